"""Pydantic schema for stored session documents."""

from datetime import datetime

from pydantic import (
    BaseModel,
    ConfigDict,
    NonNegativeInt,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)

from seat_escrow.domain.sessions import (
    PaymentStatus,
    RiderBooking,
    Session,
    SessionStatus,
)


class MalformedSessionError(RuntimeError):
    """Raised when a stored session does not match the expected shape."""

    def __init__(self, operator_id: str, session_id: str, reason: str) -> None:
        self.operator_id = operator_id
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Malformed session {operator_id}/{session_id}: {reason}")


class RiderBookingDocument(BaseModel):
    """Stored rider entry."""

    model_config = ConfigDict(extra="ignore")

    rider_id: str
    hold_id: str
    payment_status: PaymentStatus


class SessionDocument(BaseModel):
    """Stored session row."""

    model_config = ConfigDict(extra="ignore")

    operator_id: str
    session_id: str
    total_seats: PositiveInt
    booked_seats: NonNegativeInt
    min_riders_to_confirm: PositiveInt
    price_per_seat: PositiveInt
    status: SessionStatus
    riders_profile: list[RiderBookingDocument] = []
    claimed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @field_validator("riders_profile", mode="before")
    @classmethod
    def _null_riders_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    @model_validator(mode="after")
    def _check_counts(self) -> "SessionDocument":
        if self.min_riders_to_confirm > self.total_seats:
            raise ValueError("min_riders_to_confirm exceeds total_seats")
        if self.booked_seats > self.total_seats:
            raise ValueError("booked_seats exceeds total_seats")
        if self.booked_seats != len(self.riders_profile):
            raise ValueError("booked_seats does not match riders_profile")
        rider_ids = [rider.rider_id for rider in self.riders_profile]
        if len(set(rider_ids)) != len(rider_ids):
            raise ValueError("duplicate rider_id in riders_profile")
        return self

    def to_domain(self) -> Session:
        return Session(
            operator_id=self.operator_id,
            session_id=self.session_id,
            total_seats=self.total_seats,
            booked_seats=self.booked_seats,
            min_riders_to_confirm=self.min_riders_to_confirm,
            price_per_seat=self.price_per_seat,
            status=self.status,
            riders_profile=tuple(
                RiderBooking(
                    rider_id=rider.rider_id,
                    hold_id=rider.hold_id,
                    payment_status=rider.payment_status,
                )
                for rider in self.riders_profile
            ),
            claimed_at=self.claimed_at,
            cancelled_at=self.cancelled_at,
        )


def parse_session(
    operator_id: str, session_id: str, row: dict[str, object]
) -> Session:
    """Validate a stored row and convert it to a domain session."""
    try:
        document = SessionDocument.model_validate(row)
    except ValidationError as exc:
        raise MalformedSessionError(operator_id, session_id, str(exc)) from exc
    return document.to_domain()


def riders_to_json(riders: tuple[RiderBooking, ...]) -> list[dict[str, str]]:
    """Serialize riders for the ``riders_profile`` column."""
    return [
        {
            "rider_id": rider.rider_id,
            "hold_id": rider.hold_id,
            "payment_status": str(rider.payment_status),
        }
        for rider in riders
    ]


def session_to_row(session: Session) -> dict[str, object]:
    """Serialize the mutable columns of a session."""
    return {
        "booked_seats": session.booked_seats,
        "status": str(session.status),
        "riders_profile": riders_to_json(session.riders_profile),
        "claimed_at": session.claimed_at.isoformat() if session.claimed_at else None,
        "cancelled_at": (
            session.cancelled_at.isoformat() if session.cancelled_at else None
        ),
    }
