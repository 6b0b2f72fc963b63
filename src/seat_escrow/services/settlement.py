"""Claim and cancel settlement for session payment holds."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from seat_escrow.adapters.escrow_gateway import EscrowGateway
from seat_escrow.adapters.session_documents import MalformedSessionError
from seat_escrow.domain.results import (
    CancelResult,
    ClaimOutcome,
    ClaimResult,
    Rejection,
    RiderOutcome,
)
from seat_escrow.domain.sessions import (
    PaymentStatus,
    RiderBooking,
    Session,
    SessionStatus,
)
from seat_escrow.domain.state_machine import can_claim, is_final
from seat_escrow.services.booking import SessionStore
from seat_escrow.services.validation import describe_missing, missing_fields

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SettlementCoordinator:
    """Captures or releases every outstanding hold of a session.

    Gateway calls for different riders are independent and run concurrently,
    at most ``max_concurrency`` at a time. A failed call leaves that rider
    ``AUTHORIZED`` so a later run retries only what is still outstanding.
    """

    store: SessionStore
    gateway: EscrowGateway
    max_concurrency: int = 4
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def claim(self, operator_id: str, session_id: str) -> ClaimResult:
        """Capture all authorized holds and freeze the session as CLAIMED."""
        session, rejection, detail = self._load(operator_id, session_id)
        if rejection is None and not can_claim(session.status):
            rejection = Rejection.NOT_READY
            detail = f"Session status is {session.status}"
        if rejection is not None:
            return ClaimResult(
                operator_id=operator_id,
                session_id=session_id,
                rejection=rejection,
                detail=detail,
            )

        attempts = await self._settle(session, self.gateway.capture, "capture")
        settled = _settled_statuses(attempts, PaymentStatus.CAPTURED)
        failed = tuple(
            attempt.rider_id for attempt in attempts if not attempt.succeeded
        )
        if failed:
            self.store.update(operator_id, session_id, payment_statuses=settled)
            _logger.warning(
                "Claim incomplete: session=%s/%s failed_riders=%s",
                operator_id,
                session_id,
                ",".join(failed),
            )
            return ClaimResult(
                operator_id=operator_id,
                session_id=session_id,
                outcome=ClaimOutcome.PARTIAL_FAILURE,
                failed_rider_ids=failed,
                attempts=attempts,
            )

        self.store.update(
            operator_id,
            session_id,
            payment_statuses=settled,
            status=SessionStatus.CLAIMED,
            claimed_at=self.clock(),
        )
        _logger.info(
            "Session claimed: session=%s/%s captured=%s",
            operator_id,
            session_id,
            len(attempts),
        )
        return ClaimResult(
            operator_id=operator_id,
            session_id=session_id,
            outcome=ClaimOutcome.ALL_CAPTURED,
            attempts=attempts,
        )

    async def cancel(self, operator_id: str, session_id: str) -> CancelResult:
        """Release all authorized holds and freeze the session as CANCELLED."""
        session, rejection, detail = self._load(operator_id, session_id)
        if rejection is None and is_final(session.status):
            rejection = Rejection.ALREADY_TERMINAL
            detail = f"Session status is {session.status}"
        if rejection is not None:
            return CancelResult(
                operator_id=operator_id,
                session_id=session_id,
                rejection=rejection,
                detail=detail,
            )

        attempts = await self._settle(session, self.gateway.cancel, "cancel")
        settled = _settled_statuses(attempts, PaymentStatus.CANCELLED)
        unreleased = tuple(
            attempt.rider_id for attempt in attempts if not attempt.succeeded
        )
        self.store.update(
            operator_id,
            session_id,
            payment_statuses=settled,
            status=SessionStatus.CANCELLED,
            cancelled_at=self.clock(),
        )
        if unreleased:
            _logger.warning(
                "Session cancelled with unreleased holds: session=%s/%s riders=%s",
                operator_id,
                session_id,
                ",".join(unreleased),
            )
        else:
            _logger.info(
                "Session cancelled: session=%s/%s released=%s",
                operator_id,
                session_id,
                len(attempts),
            )
        return CancelResult(
            operator_id=operator_id,
            session_id=session_id,
            cancelled=True,
            unreleased_rider_ids=unreleased,
            attempts=attempts,
        )

    def _load(
        self, operator_id: str, session_id: str
    ) -> tuple[Session | None, Rejection | None, str | None]:
        missing = missing_fields(operator_id=operator_id, session_id=session_id)
        if missing:
            return None, Rejection.INVALID_INPUT, describe_missing(missing)
        try:
            session = self.store.get(operator_id, session_id)
        except MalformedSessionError as exc:
            _logger.warning("Settlement hit malformed session: %s", exc)
            return None, Rejection.MALFORMED, exc.reason
        if session is None:
            return None, Rejection.NOT_FOUND, None
        return session, None, None

    async def _settle(
        self,
        session: Session,
        call: Callable[[str], Awaitable[None]],
        action: str,
    ) -> tuple[RiderOutcome, ...]:
        """Run ``call`` once per authorized rider and collect the outcomes."""
        semaphore = asyncio.Semaphore(max(1, self.max_concurrency))

        async def settle_one(rider: RiderBooking) -> RiderOutcome:
            async with semaphore:
                try:
                    await call(rider.hold_id)
                except Exception as exc:  # noqa: BLE001
                    _logger.warning(
                        "Hold %s failed: session=%s/%s rider=%s hold=%s error=%s",
                        action,
                        session.operator_id,
                        session.session_id,
                        rider.rider_id,
                        rider.hold_id,
                        exc,
                    )
                    return RiderOutcome(
                        rider_id=rider.rider_id,
                        hold_id=rider.hold_id,
                        succeeded=False,
                        error=str(exc) or type(exc).__name__,
                    )
            return RiderOutcome(
                rider_id=rider.rider_id, hold_id=rider.hold_id, succeeded=True
            )

        outcomes = await asyncio.gather(
            *(settle_one(rider) for rider in session.authorized_riders())
        )
        return tuple(outcomes)


def _settled_statuses(
    attempts: tuple[RiderOutcome, ...], settled_status: PaymentStatus
) -> dict[str, PaymentStatus]:
    """Map riders whose gateway call succeeded to ``settled_status``."""
    return {
        attempt.rider_id: settled_status for attempt in attempts if attempt.succeeded
    }
