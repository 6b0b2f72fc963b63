"""Shared test fixtures."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from seat_escrow.adapters.escrow_gateway import EscrowError, EscrowGateway, EscrowHold
from seat_escrow.config import Settings
from seat_escrow.domain.sessions import (
    PaymentStatus,
    RiderBooking,
    Session,
    SessionStatus,
)
from seat_escrow.services.booking import BookingTransaction, SessionStore
from seat_escrow.services.holds import HoldService
from seat_escrow.services.settlement import SettlementCoordinator

OPERATOR_ID = "operator-1"
SESSION_ID = "session-1"
FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)


def make_session(  # noqa: PLR0913
    *,
    total_seats: int = 3,
    min_riders_to_confirm: int = 2,
    price_per_seat: int = 15000,
    status: SessionStatus = SessionStatus.OPEN,
    riders: tuple[RiderBooking, ...] = (),
    operator_id: str = OPERATOR_ID,
    session_id: str = SESSION_ID,
) -> Session:
    return Session(
        operator_id=operator_id,
        session_id=session_id,
        total_seats=total_seats,
        booked_seats=len(riders),
        min_riders_to_confirm=min_riders_to_confirm,
        price_per_seat=price_per_seat,
        status=status,
        riders_profile=riders,
    )


@dataclass
class InMemorySessionStore(SessionStore):
    """Thread-safe in-memory store with optimistic transactions."""

    sessions: dict[tuple[str, str], Session] = field(default_factory=dict)
    revisions: dict[tuple[str, str], int] = field(default_factory=dict)
    conflicts: int = 0
    update_calls: int = 0
    pause_seconds: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, session: Session) -> Session:
        key = (session.operator_id, session.session_id)
        with self._lock:
            self.sessions[key] = session
            self.revisions[key] = 0
        return session

    def get(self, operator_id: str, session_id: str) -> Session | None:
        with self._lock:
            return self.sessions.get((operator_id, session_id))

    def run_transaction(
        self,
        operator_id: str,
        session_id: str,
        apply: Callable[[Session | None], Session],
    ) -> Session:
        key = (operator_id, session_id)
        while True:
            with self._lock:
                current = self.sessions.get(key)
                revision = self.revisions.get(key, 0)
            updated = apply(current)
            if self.pause_seconds:
                time.sleep(self.pause_seconds)
            with self._lock:
                if self.revisions.get(key, 0) == revision:
                    self.sessions[key] = updated
                    self.revisions[key] = revision + 1
                    return updated
                self.conflicts += 1

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
        key = (operator_id, session_id)
        with self._lock:
            self.sessions[key] = self.sessions[key].with_settlement(
                payment_statuses,
                status=status,
                claimed_at=claimed_at,
                cancelled_at=cancelled_at,
            )
            self.revisions[key] = self.revisions.get(key, 0) + 1
            self.update_calls += 1


@dataclass
class FakeEscrowGateway(EscrowGateway):
    """Fake escrow gateway that records calls and fails selected holds."""

    failing_holds: set[str] = field(default_factory=set)
    fail_create: bool = False
    created: list[tuple[int, str, dict[str, str]]] = field(default_factory=list)
    capture_calls: list[str] = field(default_factory=list)
    cancel_calls: list[str] = field(default_factory=list)

    async def create(
        self, amount: int, currency: str, metadata: dict[str, str]
    ) -> EscrowHold:
        if self.fail_create:
            raise EscrowError("create", None, "Your card was declined.")
        self.created.append((amount, currency, metadata))
        hold_id = f"pi_{len(self.created)}"
        return EscrowHold(hold_id=hold_id, client_secret=f"{hold_id}_secret_x")

    async def capture(self, hold_id: str) -> None:
        self.capture_calls.append(hold_id)
        if hold_id in self.failing_holds:
            raise EscrowError("capture", hold_id, "The charge expired.")

    async def cancel(self, hold_id: str) -> None:
        self.cancel_calls.append(hold_id)
        if hold_id in self.failing_holds:
            raise EscrowError("cancel", hold_id, "Network timeout.")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
            ".eyJyb2xlIjoic2VydmljZV9yb2xlIn0"
            ".c2lnbmF0dXJl"
        ),
        stripe_secret_key="sk_test_123",
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def gateway() -> FakeEscrowGateway:
    return FakeEscrowGateway()


@pytest.fixture
def booking(store: InMemorySessionStore) -> BookingTransaction:
    return BookingTransaction(store)


@pytest.fixture
def coordinator(
    store: InMemorySessionStore, gateway: FakeEscrowGateway
) -> SettlementCoordinator:
    return SettlementCoordinator(store=store, gateway=gateway, clock=lambda: FIXED_NOW)


@pytest.fixture
def hold_service(
    store: InMemorySessionStore, gateway: FakeEscrowGateway
) -> HoldService:
    return HoldService(store=store, gateway=gateway, currency="aed")
