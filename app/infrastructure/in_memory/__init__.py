"""Implementaciones in-memory para testing y ejecución local sin base de datos."""

from app.infrastructure.in_memory.audit_log import InMemoryAuditLog
from app.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from app.infrastructure.in_memory.flight_order_repo import InMemoryFlightOrderRepo
from app.infrastructure.in_memory.flight_provider import StubAmadeusProvider, StubDuffelProvider
from app.infrastructure.in_memory.idempotency_guard import InMemoryIdempotencyGuard
from app.infrastructure.in_memory.notification_sender import (
    LoggingNotificationSender,
    RecordingNotificationSender,
)
from app.infrastructure.in_memory.payment_gateway import StubPaymentGateway
from app.infrastructure.in_memory.payment_repo import InMemoryPaymentRepo
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager as InMemoryTransactionManager
from app.infrastructure.in_memory.traveler_repo import InMemoryFlightSegmentRepo, InMemoryTravelerRepo

__all__ = [
    # Repositories
    "InMemoryFlightOrderRepo",
    "InMemoryBookingRepo",
    "InMemoryPaymentRepo",
    "InMemoryTravelerRepo",
    "InMemoryFlightSegmentRepo",
    "InMemoryAuditLog",
    "InMemoryIdempotencyGuard",
    # Gateways
    "StubDuffelProvider",
    "StubAmadeusProvider",
    "StubPaymentGateway",
    "LoggingNotificationSender",
    "RecordingNotificationSender",
    # Infrastructure
    "InMemoryTransactionManager",
]
