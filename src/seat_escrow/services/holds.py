"""Opening payment holds ahead of a seat reservation."""

import logging
from dataclasses import dataclass

from seat_escrow.adapters.escrow_gateway import EscrowError, EscrowGateway
from seat_escrow.adapters.session_documents import MalformedSessionError
from seat_escrow.domain.results import HoldResult, Rejection
from seat_escrow.domain.state_machine import is_bookable
from seat_escrow.services.booking import SessionStore
from seat_escrow.services.validation import describe_missing, missing_fields

_logger = logging.getLogger(__name__)


@dataclass
class HoldService:
    """Authorizes a rider's payment for a session before booking."""

    store: SessionStore
    gateway: EscrowGateway
    currency: str = "aed"

    async def begin_booking(
        self, operator_id: str, session_id: str, rider_id: str
    ) -> HoldResult:
        """Create a hold for one seat at the session's price.

        The returned hold id is what the caller passes to
        ``BookingTransaction.reserve_seat`` once the rider confirmed payment.
        """
        missing = missing_fields(
            operator_id=operator_id, session_id=session_id, rider_id=rider_id
        )
        if missing:
            return self._rejected(
                operator_id,
                session_id,
                rider_id,
                Rejection.INVALID_INPUT,
                describe_missing(missing),
            )

        try:
            session = self.store.get(operator_id, session_id)
        except MalformedSessionError as exc:
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.MALFORMED, exc.reason
            )
        if session is None:
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.NOT_FOUND
            )
        if not is_bookable(session.status):
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.NOT_BOOKABLE
            )
        if session.booked_seats >= session.total_seats:
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.SESSION_FULL
            )
        if session.has_rider(rider_id):
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.ALREADY_BOOKED
            )

        try:
            hold = await self.gateway.create(
                amount=session.price_per_seat,
                currency=self.currency,
                metadata={
                    "sessionId": session_id,
                    "operatorId": operator_id,
                    "riderId": rider_id,
                },
            )
        except EscrowError as exc:
            _logger.warning(
                "Hold creation failed: session=%s/%s rider=%s error=%s",
                operator_id,
                session_id,
                rider_id,
                exc,
            )
            return self._rejected(
                operator_id, session_id, rider_id, Rejection.GATEWAY_ERROR, str(exc)
            )

        _logger.info(
            "Hold created: session=%s/%s rider=%s hold=%s",
            operator_id,
            session_id,
            rider_id,
            hold.hold_id,
        )
        return HoldResult(
            operator_id=operator_id,
            session_id=session_id,
            rider_id=rider_id,
            hold_id=hold.hold_id,
            client_secret=hold.client_secret,
            amount=session.price_per_seat,
            currency=self.currency,
        )

    def _rejected(
        self,
        operator_id: str,
        session_id: str,
        rider_id: str,
        rejection: Rejection,
        detail: str | None = None,
    ) -> HoldResult:
        return HoldResult(
            operator_id=operator_id,
            session_id=session_id,
            rider_id=rider_id,
            rejection=rejection,
            detail=detail,
        )
