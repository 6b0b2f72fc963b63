"""Result types returned by booking and settlement operations."""

from dataclasses import dataclass
from enum import StrEnum

from seat_escrow.domain.sessions import Session


class Rejection(StrEnum):
    """Reason an operation did not go through."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    MALFORMED = "MALFORMED"
    NOT_BOOKABLE = "NOT_BOOKABLE"
    SESSION_FULL = "SESSION_FULL"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    NOT_READY = "NOT_READY"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"
    GATEWAY_ERROR = "GATEWAY_ERROR"


class ClaimOutcome(StrEnum):
    """Aggregate result of capturing a session's holds."""

    ALL_CAPTURED = "ALL_CAPTURED"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"


@dataclass(frozen=True)
class RiderOutcome:
    """Result of one gateway call for one rider."""

    rider_id: str
    hold_id: str
    succeeded: bool
    error: str | None = None


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a seat reservation."""

    operator_id: str
    session_id: str
    rider_id: str
    session: Session | None = None
    rejection: Rejection | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of a claim run.

    ``outcome`` is set whenever the captures were attempted; ``rejection`` is
    set when the run stopped before touching the gateway.
    """

    operator_id: str
    session_id: str
    outcome: ClaimOutcome | None = None
    rejection: Rejection | None = None
    failed_rider_ids: tuple[str, ...] = ()
    attempts: tuple[RiderOutcome, ...] = ()
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == ClaimOutcome.ALL_CAPTURED


@dataclass(frozen=True)
class CancelResult:
    """Outcome of a cancel run."""

    operator_id: str
    session_id: str
    cancelled: bool = False
    rejection: Rejection | None = None
    unreleased_rider_ids: tuple[str, ...] = ()
    attempts: tuple[RiderOutcome, ...] = ()
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.cancelled


@dataclass(frozen=True)
class HoldResult:
    """Outcome of opening a payment hold for a prospective rider."""

    operator_id: str
    session_id: str
    rider_id: str
    hold_id: str | None = None
    client_secret: str | None = None
    amount: int | None = None
    currency: str | None = None
    rejection: Rejection | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None
