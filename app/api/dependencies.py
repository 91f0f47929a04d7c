from functools import lru_cache
from typing import Any

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_sessionmaker
from app.application.dtos.order_dto import Caller
from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.idempotency_guard import IdempotencyGuard
from app.application.use_cases.cancel_flight_order import (
    CancelFlightOrderUseCase,
    GetRefundQuoteUseCase,
    RefundFlightOrderUseCase,
)
from app.application.use_cases.change_flight_order import (
    ConfirmOrderChangeUseCase,
    GetOrderChangeOptionsUseCase,
)
from app.application.use_cases.confirm_price import ConfirmPriceUseCase
from app.application.use_cases.create_flight_order import CreateFlightOrderUseCase
from app.application.use_cases.flight_extras import (
    GetAncillariesUseCase,
    GetSeatMapsUseCase,
    ListProvidersUseCase,
    SearchLocationsUseCase,
)
from app.application.use_cases.get_flight_orders import (
    GetFlightOrderUseCase,
    ListAllFlightOrdersUseCase,
    ListMyFlightOrdersUseCase,
)
from app.application.use_cases.payment_orchestrator import PaymentOrchestrator
from app.application.use_cases.reconcile_webhook import ReconcileProviderWebhookUseCase
from app.application.use_cases.search_flights import SearchFlightsUseCase
from app.config import Settings, get_settings
from app.infrastructure.db.repositories.audit_log_sql import AuditLogSQL
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.flight_order_repo_sql import FlightOrderRepoSQL
from app.infrastructure.db.repositories.payment_repo_sql import PaymentRepoSQL
from app.infrastructure.db.repositories.traveler_repo_sql import FlightSegmentRepoSQL, TravelerRepoSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from app.infrastructure.gateways.factory import GatewayFactory
from app.infrastructure.in_memory import (
    InMemoryAuditLog,
    InMemoryBookingRepo,
    InMemoryFlightOrderRepo,
    InMemoryFlightSegmentRepo,
    InMemoryIdempotencyGuard,
    InMemoryPaymentRepo,
    InMemoryTransactionManager,
    InMemoryTravelerRepo,
    LoggingNotificationSender,
)

ADMIN_ROLE = "admin"


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock()


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncSession | None:
    if settings.use_in_memory:
        yield None
        return
    async with get_sessionmaker()() as session:
        yield session


@lru_cache(maxsize=1)
def _upstream_bundle() -> dict[str, Any]:
    factory = GatewayFactory(get_settings())
    return {
        "provider_router": factory.provider_router(get_clock()),
        "gateways": factory.payment_gateways(),
        "notification_sender": LoggingNotificationSender(),
    }


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict[str, Any]:
    return {
        "flight_order_repo": InMemoryFlightOrderRepo(),
        "booking_repo": InMemoryBookingRepo(),
        "payment_repo": InMemoryPaymentRepo(),
        "traveler_repo": InMemoryTravelerRepo(),
        "segment_repo": InMemoryFlightSegmentRepo(),
        "audit_log": InMemoryAuditLog(),
        "tx_manager": InMemoryTransactionManager(),
    }


def get_bundle(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
) -> dict[str, Any]:
    """Repositories, upstream clients and the clock for one request."""
    shared = {**_upstream_bundle(), "clock": get_clock()}
    if settings.use_in_memory:
        return {**_in_memory_bundle(), **shared}

    if not session:
        raise RuntimeError("DB session not available")

    return {
        "flight_order_repo": FlightOrderRepoSQL(session),
        "booking_repo": BookingRepoSQL(session),
        "payment_repo": PaymentRepoSQL(session),
        "traveler_repo": TravelerRepoSQL(session),
        "segment_repo": FlightSegmentRepoSQL(session),
        "audit_log": AuditLogSQL(session),
        "tx_manager": SQLAlchemyTransactionManager(session),
        **shared,
    }


def build_use_cases(bundle: dict[str, Any], settings: Settings) -> dict[str, Any]:
    router = bundle["provider_router"]
    clock = bundle["clock"]

    create_flight_order = CreateFlightOrderUseCase(
        flight_order_repo=bundle["flight_order_repo"],
        booking_repo=bundle["booking_repo"],
        traveler_repo=bundle["traveler_repo"],
        segment_repo=bundle["segment_repo"],
        audit_log=bundle["audit_log"],
        notification_sender=bundle["notification_sender"],
        provider_router=router,
        transaction_manager=bundle["tx_manager"],
        clock=clock,
        order_create_timeout_seconds=settings.order_create_timeout_seconds,
    )

    return {
        "search_flights": SearchFlightsUseCase(
            provider_router=router, clock=clock, max_results=settings.search_max_results
        ),
        "list_providers": ListProvidersUseCase(provider_router=router),
        "search_locations": SearchLocationsUseCase(provider_router=router),
        "confirm_price": ConfirmPriceUseCase(provider_router=router, clock=clock),
        "seat_maps": GetSeatMapsUseCase(provider_router=router),
        "ancillaries": GetAncillariesUseCase(provider_router=router),
        "create_flight_order": create_flight_order,
        "get_flight_order": GetFlightOrderUseCase(
            flight_order_repo=bundle["flight_order_repo"],
            booking_repo=bundle["booking_repo"],
            traveler_repo=bundle["traveler_repo"],
            segment_repo=bundle["segment_repo"],
            provider_router=router,
            transaction_manager=bundle["tx_manager"],
            clock=clock,
        ),
        "list_my_orders": ListMyFlightOrdersUseCase(flight_order_repo=bundle["flight_order_repo"]),
        "list_all_orders": ListAllFlightOrdersUseCase(flight_order_repo=bundle["flight_order_repo"]),
        "cancel_flight_order": CancelFlightOrderUseCase(
            flight_order_repo=bundle["flight_order_repo"],
            booking_repo=bundle["booking_repo"],
            audit_log=bundle["audit_log"],
            notification_sender=bundle["notification_sender"],
            provider_router=router,
            transaction_manager=bundle["tx_manager"],
            clock=clock,
        ),
        "refund_quote": GetRefundQuoteUseCase(flight_order_repo=bundle["flight_order_repo"]),
        "refund_flight_order": RefundFlightOrderUseCase(
            flight_order_repo=bundle["flight_order_repo"],
            booking_repo=bundle["booking_repo"],
            payment_repo=bundle["payment_repo"],
            audit_log=bundle["audit_log"],
            notification_sender=bundle["notification_sender"],
            provider_router=router,
            gateways=bundle["gateways"],
            transaction_manager=bundle["tx_manager"],
            clock=clock,
        ),
        "change_options": GetOrderChangeOptionsUseCase(
            flight_order_repo=bundle["flight_order_repo"], provider_router=router
        ),
        "confirm_change": ConfirmOrderChangeUseCase(
            flight_order_repo=bundle["flight_order_repo"],
            audit_log=bundle["audit_log"],
            provider_router=router,
            transaction_manager=bundle["tx_manager"],
            clock=clock,
        ),
        "payments": PaymentOrchestrator(
            create_flight_order=create_flight_order,
            payment_repo=bundle["payment_repo"],
            booking_repo=bundle["booking_repo"],
            flight_order_repo=bundle["flight_order_repo"],
            audit_log=bundle["audit_log"],
            notification_sender=bundle["notification_sender"],
            provider_router=router,
            gateways=bundle["gateways"],
            transaction_manager=bundle["tx_manager"],
            clock=clock,
            return_url=settings.payment_return_url,
            callback_base_url=settings.payment_callback_url,
        ),
        "reconcile_webhook": ReconcileProviderWebhookUseCase(
            flight_order_repo=bundle["flight_order_repo"],
            booking_repo=bundle["booking_repo"],
            audit_log=bundle["audit_log"],
            notification_sender=bundle["notification_sender"],
            transaction_manager=bundle["tx_manager"],
            clock=clock,
        ),
    }


def get_use_cases(
    settings: Settings = Depends(get_settings),
    bundle: dict[str, Any] = Depends(get_bundle),
) -> dict[str, Any]:
    return build_use_cases(bundle, settings)


@lru_cache(maxsize=1)
def get_idempotency_guard() -> IdempotencyGuard:
    settings = get_settings()
    return InMemoryIdempotencyGuard(
        clock=get_clock(),
        ttl_seconds=settings.idempotency_ttl_seconds,
        purge_seconds=settings.idempotency_purge_seconds,
    )


def get_caller(
    user_id: str | None = Header(default=None, convert_underscores=False, alias="X-User-Id"),
    role: str | None = Header(default=None, convert_underscores=False, alias="X-User-Role"),
) -> Caller:
    # Authentication happens upstream; the gateway forwards the resolved identity.
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return Caller(user_id=user_id, is_admin=(role or "").lower() == ADMIN_ROLE)
