"""Seat reservation transaction."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from seat_escrow.adapters.session_documents import MalformedSessionError
from seat_escrow.domain.results import BookingResult, Rejection
from seat_escrow.domain.sessions import (
    PaymentStatus,
    RiderBooking,
    Session,
    SessionStatus,
)
from seat_escrow.domain.state_machine import is_bookable, next_status
from seat_escrow.services.validation import describe_missing, missing_fields

_logger = logging.getLogger(__name__)


class BookingRejected(Exception):  # noqa: N818
    """Aborts a store transaction without writing anything."""

    def __init__(self, rejection: Rejection) -> None:
        self.rejection = rejection
        super().__init__(str(rejection))


class SessionStore(Protocol):
    """Transactional document store keyed by operator and session."""

    def get(self, operator_id: str, session_id: str) -> Session | None:
        """Return the current session, if present."""

    def run_transaction(
        self,
        operator_id: str,
        session_id: str,
        apply: Callable[[Session | None], Session],
    ) -> Session:
        """Atomically read, transform and write a session.

        ``apply`` may run several times when concurrent writers collide. Any
        exception it raises aborts the transaction and propagates unchanged.
        """

    def update(  # noqa: PLR0913
        self,
        operator_id: str,
        session_id: str,
        *,
        payment_statuses: dict[str, PaymentStatus],
        status: SessionStatus | None = None,
        claimed_at: datetime | None = None,
        cancelled_at: datetime | None = None,
    ) -> None:
        """Write settlement results onto the session as currently stored.

        ``payment_statuses`` maps rider ids to their new status. Riders booked
        after the settlement read its session are kept untouched.
        """


def add_rider(session: Session | None, rider_id: str, hold_id: str) -> Session:
    """Return the session with one more authorized rider.

    Raises ``BookingRejected`` when the seat cannot be taken.
    """
    if session is None:
        raise BookingRejected(Rejection.NOT_FOUND)
    if not is_bookable(session.status):
        raise BookingRejected(Rejection.NOT_BOOKABLE)
    if session.booked_seats >= session.total_seats:
        raise BookingRejected(Rejection.SESSION_FULL)
    if session.has_rider(rider_id):
        raise BookingRejected(Rejection.ALREADY_BOOKED)

    booked_seats = session.booked_seats + 1
    rider = RiderBooking(
        rider_id=rider_id, hold_id=hold_id, payment_status=PaymentStatus.AUTHORIZED
    )
    return replace(
        session,
        booked_seats=booked_seats,
        riders_profile=(*session.riders_profile, rider),
        status=next_status(
            booked_seats, session.total_seats, session.min_riders_to_confirm
        ),
    )


@dataclass
class BookingTransaction:
    """Reserves seats against the session store."""

    store: SessionStore

    def reserve_seat(
        self, operator_id: str, session_id: str, rider_id: str, hold_id: str
    ) -> BookingResult:
        """Attach a rider and their hold to a session in one transaction."""
        missing = missing_fields(
            operator_id=operator_id,
            session_id=session_id,
            rider_id=rider_id,
            hold_id=hold_id,
        )
        if missing:
            return BookingResult(
                operator_id=operator_id,
                session_id=session_id,
                rider_id=rider_id,
                rejection=Rejection.INVALID_INPUT,
                detail=describe_missing(missing),
            )

        try:
            committed = self.store.run_transaction(
                operator_id,
                session_id,
                lambda current: add_rider(current, rider_id, hold_id),
            )
        except BookingRejected as exc:
            _logger.info(
                "Booking rejected: session=%s/%s rider=%s reason=%s",
                operator_id,
                session_id,
                rider_id,
                exc.rejection,
            )
            return BookingResult(
                operator_id=operator_id,
                session_id=session_id,
                rider_id=rider_id,
                rejection=exc.rejection,
            )
        except MalformedSessionError as exc:
            _logger.warning("Booking hit malformed session: %s", exc)
            return BookingResult(
                operator_id=operator_id,
                session_id=session_id,
                rider_id=rider_id,
                rejection=Rejection.MALFORMED,
                detail=exc.reason,
            )

        _logger.info(
            "Seat reserved: session=%s/%s rider=%s booked=%s/%s status=%s",
            operator_id,
            session_id,
            rider_id,
            committed.booked_seats,
            committed.total_seats,
            committed.status,
        )
        return BookingResult(
            operator_id=operator_id,
            session_id=session_id,
            rider_id=rider_id,
            session=committed,
        )
