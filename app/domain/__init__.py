"""
Capa de Dominio - Orquestación de reservas de vuelos.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.
Incluye entidades, value objects y excepciones de dominio.

Estructura:
- entities/: Entidades del dominio (FlightOffer, FlightOrder, Booking, Payment, etc.)
- value_objects/: Objetos de valor inmutables (Money)
- errors.py: Excepciones específicas del dominio
"""

from app.domain.entities import (
    Booking,
    BookingPaymentStatus,
    BookingStatus,
    FlightOffer,
    FlightOrder,
    FlightOrderStatus,
    FlightSegment,
    Payment,
    PaymentFlow,
    PaymentStatus,
    ProviderKind,
    TicketingStatus,
    Traveler,
    TravelerDocument,
)
from app.domain.errors import (
    DomainError,
    DuplicateRequestError,
    ForbiddenError,
    IdempotencyConflictError,
    InvalidOrderStateError,
    NotFoundError,
    OfferExpiredError,
    PaymentVerificationFailed,
    PostPaymentBookingFailure,
    ProviderError,
    ProviderErrorKind,
    TimeoutAmbiguousError,
    ValidationError,
)
from app.domain.value_objects import Money

__all__ = [
    # Entities
    "Booking",
    "BookingPaymentStatus",
    "BookingStatus",
    "FlightOffer",
    "FlightOrder",
    "FlightOrderStatus",
    "FlightSegment",
    "Payment",
    "PaymentFlow",
    "PaymentStatus",
    "ProviderKind",
    "TicketingStatus",
    "Traveler",
    "TravelerDocument",
    # Errors
    "DomainError",
    "DuplicateRequestError",
    "ForbiddenError",
    "IdempotencyConflictError",
    "InvalidOrderStateError",
    "NotFoundError",
    "OfferExpiredError",
    "PaymentVerificationFailed",
    "PostPaymentBookingFailure",
    "ProviderError",
    "ProviderErrorKind",
    "TimeoutAmbiguousError",
    "ValidationError",
    # Value Objects
    "Money",
]
