"""Domain models for bookable sessions."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle status of a session."""

    OPEN = "OPEN"
    MIN_REACHED = "MIN_REACHED"
    FULL = "FULL"
    CLAIMED = "CLAIMED"
    CANCELLED = "CANCELLED"


class PaymentStatus(StrEnum):
    """State of a rider's payment hold."""

    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class RiderBooking:
    """One rider's seat and the hold that pays for it."""

    rider_id: str
    hold_id: str
    payment_status: PaymentStatus = PaymentStatus.AUTHORIZED


@dataclass(frozen=True)
class Session:
    """Represents one bookable instance of an operator's offering."""

    operator_id: str
    session_id: str
    total_seats: int
    booked_seats: int
    min_riders_to_confirm: int
    price_per_seat: int
    status: SessionStatus
    riders_profile: tuple[RiderBooking, ...] = ()
    claimed_at: datetime | None = None
    cancelled_at: datetime | None = None

    def has_rider(self, rider_id: str) -> bool:
        """Return True if the rider already holds a seat."""
        return any(rider.rider_id == rider_id for rider in self.riders_profile)

    def authorized_riders(self) -> list[RiderBooking]:
        """Return riders whose hold is still waiting for settlement."""
        return [
            rider
            for rider in self.riders_profile
            if rider.payment_status == PaymentStatus.AUTHORIZED
        ]

    def with_payment_statuses(
        self, payment_statuses: dict[str, PaymentStatus]
    ) -> tuple[RiderBooking, ...]:
        """Return the rider list with the given riders' statuses replaced."""
        return tuple(
            replace(rider, payment_status=payment_statuses[rider.rider_id])
            if rider.rider_id in payment_statuses
            else rider
            for rider in self.riders_profile
        )

    def with_settlement(
        self,
        payment_statuses: dict[str, PaymentStatus],
        status: SessionStatus | None = None,
        claimed_at: datetime | None = None,
        cancelled_at: datetime | None = None,
    ) -> "Session":
        """Return the session with settlement results applied.

        Seat counts are left as stored; only rider statuses, the status and the
        terminal timestamps change.
        """
        return replace(
            self,
            riders_profile=self.with_payment_statuses(payment_statuses),
            status=status or self.status,
            claimed_at=claimed_at or self.claimed_at,
            cancelled_at=cancelled_at or self.cancelled_at,
        )
