"""Interfaces (Puertos) de la capa de aplicación."""

from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.flight_provider import FlightProviderClient, SearchCriteria
from app.application.interfaces.idempotency_guard import CachedResponse, IdempotencyGuard
from app.application.interfaces.notification_sender import NotificationSender
from app.application.interfaces.payment_gateway import (
    CallbackReference,
    ChargePage,
    ChargeRequest,
    PaymentGateway,
    PaymentVerification,
    RefundResult,
)
from app.application.interfaces.payment_repo import PaymentRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.traveler_repo import FlightSegmentRepo, TravelerRepo

__all__ = [
    # Repositories
    "BookingRepo",
    "FlightOrderRepo",
    "FlightSegmentRepo",
    "PaymentRepo",
    "TravelerRepo",
    "AuditLog",
    "AuditEvent",
    # Gateways
    "FlightProviderClient",
    "SearchCriteria",
    "PaymentGateway",
    "ChargeRequest",
    "ChargePage",
    "PaymentVerification",
    "RefundResult",
    "CallbackReference",
    "NotificationSender",
    # Services
    "Clock",
    "SystemClock",
    "FakeClock",
    "IdempotencyGuard",
    "CachedResponse",
    "TransactionManager",
]
