"""Supabase-backed session store."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from supabase import Client

from seat_escrow.adapters.session_documents import parse_session, session_to_row
from seat_escrow.domain.sessions import PaymentStatus, Session, SessionStatus
from seat_escrow.services.booking import SessionStore

_logger = logging.getLogger(__name__)

_COLUMNS = (
    "operator_id, session_id, total_seats, booked_seats, min_riders_to_confirm, "
    "price_per_seat, status, riders_profile, claimed_at, cancelled_at, revision"
)


class TransactionConflictError(RuntimeError):
    """Raised when a transaction keeps losing the compare-and-swap race."""


@dataclass
class SupabaseSessionStore(SessionStore):
    """Session store with optimistic concurrency on the ``revision`` column."""

    client: Client
    table_name: str = "sessions"
    max_attempts: int = 25

    def get(self, operator_id: str, session_id: str) -> Session | None:
        """Return a session by key, if present."""
        row = self._fetch_row(operator_id, session_id)
        if row is None:
            return None
        return parse_session(operator_id, session_id, row)

    def run_transaction(
        self,
        operator_id: str,
        session_id: str,
        apply: Callable[[Session | None], Session],
    ) -> Session:
        """Read, apply and write back, retrying when the row changed meanwhile."""
        for attempt in range(1, self.max_attempts + 1):
            row = self._fetch_row(operator_id, session_id)
            current = (
                parse_session(operator_id, session_id, row) if row is not None else None
            )
            updated = apply(current)
            if row is None:
                # Rows are created outside this store.
                raise RuntimeError(
                    f"Cannot create session {operator_id}/{session_id} in a transaction"
                )
            payload = {**session_to_row(updated), "revision": _new_revision()}
            query = (
                self.client.table(self.table_name)
                .update(payload)
                .eq("operator_id", operator_id)
                .eq("session_id", session_id)
            )
            revision = row.get("revision")
            if revision is None:
                query = query.is_("revision", "null")
            else:
                query = query.eq("revision", revision)
            response = query.execute()
            if response.data:
                return updated
            _logger.debug(
                "Session write conflict: session=%s/%s attempt=%s",
                operator_id,
                session_id,
                attempt,
            )
        _logger.warning(
            "Session transaction gave up: session=%s/%s attempts=%s",
            operator_id,
            session_id,
            self.max_attempts,
        )
        raise TransactionConflictError(
            f"Session {operator_id}/{session_id} kept changing during the transaction"
        )

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
        """Merge settlement results onto the stored row.

        Goes through the same revision guard as bookings, so a rider booked
        while the gateway calls were in flight is kept and the seat count stays
        in step with the rider list.
        """

        def apply(current: Session | None) -> Session:
            if current is None:
                raise RuntimeError(
                    f"Session {operator_id}/{session_id} vanished during settlement"
                )
            return current.with_settlement(
                payment_statuses,
                status=status,
                claimed_at=claimed_at,
                cancelled_at=cancelled_at,
            )

        self.run_transaction(operator_id, session_id, apply)

    def _fetch_row(self, operator_id: str, session_id: str) -> dict | None:
        response = (
            self.client.table(self.table_name)
            .select(_COLUMNS)
            .eq("operator_id", operator_id)
            .eq("session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]


def _new_revision() -> str:
    return uuid4().hex
