"""
Capa de Aplicación - Orquestación de reservas de vuelos.

Esta capa contiene los casos de uso, DTOs e interfaces (puertos).
Orquesta la lógica de negocio y define los contratos con la infraestructura.

Estructura:
- use_cases/: Casos de uso del sistema
- services/: Piezas compartidas entre casos de uso (saga, enrutado de proveedores, validación)
- dtos/: Data Transfer Objects
- interfaces/: Puertos (contratos para adaptadores)
"""

from app.application.dtos import (
    CallbackOutcome,
    CancellationOutcome,
    Caller,
    CheckoutResult,
    FlightOrderDetails,
    OrderPage,
    RefundQuote,
)
from app.application.interfaces import (
    AuditLog,
    BookingRepo,
    Clock,
    FakeClock,
    FlightOrderRepo,
    FlightProviderClient,
    IdempotencyGuard,
    NotificationSender,
    PaymentGateway,
    PaymentRepo,
    SystemClock,
    TransactionManager,
    TravelerRepo,
)

__all__ = [
    # DTOs
    "Caller",
    "FlightOrderDetails",
    "OrderPage",
    "RefundQuote",
    "CancellationOutcome",
    "CheckoutResult",
    "CallbackOutcome",
    # Interfaces - Repositories
    "FlightOrderRepo",
    "BookingRepo",
    "PaymentRepo",
    "TravelerRepo",
    "AuditLog",
    # Interfaces - Gateways
    "FlightProviderClient",
    "PaymentGateway",
    "NotificationSender",
    # Interfaces - Infrastructure
    "TransactionManager",
    "IdempotencyGuard",
    # Interfaces - Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
]
