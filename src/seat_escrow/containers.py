"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from seat_escrow.adapters.escrow_gateway import (
    EscrowGateway,
    HttpxStripeEscrowGateway,
)
from seat_escrow.adapters.supabase_session_store import SupabaseSessionStore
from seat_escrow.app_logging import configure_logging
from seat_escrow.config import Settings
from seat_escrow.services.booking import BookingTransaction, SessionStore
from seat_escrow.services.holds import HoldService
from seat_escrow.services.settlement import SettlementCoordinator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: SessionStore
    escrow_gateway: EscrowGateway
    hold_service: HoldService
    booking_transaction: BookingTransaction
    settlement_coordinator: SettlementCoordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    configure_logging()
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_store = SupabaseSessionStore(
        client=supabase_client,
        table_name=resolved_settings.sessions_table,
        max_attempts=resolved_settings.store_max_attempts,
    )
    escrow_gateway = HttpxStripeEscrowGateway.create_client(
        secret_key=resolved_settings.stripe_secret_key,
        base_url=resolved_settings.stripe_base_url,
    )
    hold_service = HoldService(
        store=session_store,
        gateway=escrow_gateway,
        currency=resolved_settings.escrow_currency,
    )
    booking_transaction = BookingTransaction(session_store)
    settlement_coordinator = SettlementCoordinator(
        store=session_store,
        gateway=escrow_gateway,
        max_concurrency=resolved_settings.settlement_concurrency,
    )

    async def close_resources() -> None:
        await escrow_gateway.close()

    return AppContainer(
        settings=resolved_settings,
        session_store=session_store,
        escrow_gateway=escrow_gateway,
        hold_service=hold_service,
        booking_transaction=booking_transaction,
        settlement_coordinator=settlement_coordinator,
        close_resources=close_resources,
    )
