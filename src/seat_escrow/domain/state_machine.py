"""Session lifecycle rules.

``OPEN -> MIN_REACHED -> FULL`` follows the seat count. ``CLAIMED`` and
``CANCELLED`` are terminal and can be entered from any non-terminal status.
"""

from seat_escrow.domain.sessions import SessionStatus

_FINAL_STATUSES = frozenset({SessionStatus.CLAIMED, SessionStatus.CANCELLED})
_CLAIMABLE_STATUSES = frozenset({SessionStatus.MIN_REACHED, SessionStatus.FULL})


def next_status(
    booked_seats: int, total_seats: int, min_riders_to_confirm: int
) -> SessionStatus:
    """Derive the non-terminal status from the seat counts."""
    if booked_seats >= total_seats:
        return SessionStatus.FULL
    if booked_seats >= min_riders_to_confirm:
        return SessionStatus.MIN_REACHED
    return SessionStatus.OPEN


def can_claim(status: SessionStatus) -> bool:
    """Return True once the session has enough riders to be claimed."""
    return status in _CLAIMABLE_STATUSES


def is_bookable(status: SessionStatus) -> bool:
    """Return True while the session still accepts seat mutations."""
    return status not in _FINAL_STATUSES


def is_final(status: SessionStatus) -> bool:
    """Return True for absorbing statuses."""
    return status in _FINAL_STATUSES
