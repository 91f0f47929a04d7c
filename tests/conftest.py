"""
Shared fixtures.

Every test gets a fresh in-memory bundle (repositories, stub providers and
gateways, a FakeClock) so tests never share state through module caches.
"""

from datetime import datetime, timezone
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import build_use_cases, get_bundle, get_idempotency_guard
from app.application.interfaces.clock import FakeClock
from app.application.interfaces.flight_provider import SearchCriteria
from app.application.services.gateway_registry import PaymentGatewayRegistry
from app.application.services.provider_router import ProviderRouter
from app.config import Settings, get_settings
from app.domain.entities.flight_offer import ProviderKind
from app.infrastructure.circuit_breaker import ALL_BREAKERS
from app.infrastructure.gateways import amadeus_normalizer, duffel_normalizer
from app.infrastructure.in_memory import (
    InMemoryAuditLog,
    InMemoryBookingRepo,
    InMemoryFlightOrderRepo,
    InMemoryFlightSegmentRepo,
    InMemoryIdempotencyGuard,
    InMemoryPaymentRepo,
    InMemoryTransactionManager,
    InMemoryTravelerRepo,
    RecordingNotificationSender,
    StubAmadeusProvider,
    StubDuffelProvider,
    StubPaymentGateway,
)
from app.main import app

FIXED_NOW = datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Breakers are module-level; one test opening a circuit must not leak into the next."""
    for breaker in ALL_BREAKERS:
        breaker.close()
    yield
    for breaker in ALL_BREAKERS:
        breaker.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings(use_in_memory=True, order_create_timeout_seconds=0.2)


@pytest.fixture
def duffel(clock) -> StubDuffelProvider:
    return StubDuffelProvider(clock)


@pytest.fixture
def amadeus(clock) -> StubAmadeusProvider:
    return StubAmadeusProvider(clock)


@pytest.fixture
def paytabs() -> StubPaymentGateway:
    return StubPaymentGateway("paytabs")


@pytest.fixture
def notifications() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture
def bundle(clock, duffel, amadeus, paytabs, notifications) -> dict[str, Any]:
    return {
        "flight_order_repo": InMemoryFlightOrderRepo(),
        "booking_repo": InMemoryBookingRepo(),
        "payment_repo": InMemoryPaymentRepo(),
        "traveler_repo": InMemoryTravelerRepo(),
        "segment_repo": InMemoryFlightSegmentRepo(),
        "audit_log": InMemoryAuditLog(),
        "tx_manager": InMemoryTransactionManager(),
        "provider_router": ProviderRouter(
            {ProviderKind.MODERN: duffel, ProviderKind.GDS: amadeus}, ProviderKind.MODERN
        ),
        "gateways": PaymentGatewayRegistry({"paytabs": paytabs, "stripe": StubPaymentGateway("stripe")}),
        "notification_sender": notifications,
        "clock": clock,
    }


@pytest.fixture
def use_cases(bundle, settings) -> dict[str, Any]:
    return build_use_cases(bundle, settings)


@pytest.fixture
def guard(clock) -> InMemoryIdempotencyGuard:
    return InMemoryIdempotencyGuard(clock=clock, ttl_seconds=300, purge_seconds=600)


@pytest.fixture
def client(bundle, settings, guard) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_bundle] = lambda: bundle
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_idempotency_guard] = lambda: guard

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# Test data
# ============================================================================


@pytest.fixture
def criteria() -> SearchCriteria:
    return SearchCriteria(origin="JFK", destination="MAD", departure_date="2025-12-15", adults=1)


@pytest.fixture
def duffel_offer(duffel, criteria) -> dict[str, Any]:
    """A modern-provider offer as the search endpoint returns it."""
    return duffel_normalizer.normalize_offer(duffel.raw_offer(criteria)).to_snapshot()


@pytest.fixture
def amadeus_offer(amadeus, criteria) -> dict[str, Any]:
    return amadeus_normalizer.normalize_offer(amadeus.raw_offer(criteria)).to_snapshot()

