"""Excepciones de dominio para la orquestación de reservas de vuelos."""

from enum import Enum
from typing import Any


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Campos adicionales expuestos en la respuesta HTTP."""
        return {}


# === Errores de validación ===


class ValidationError(DomainError):
    """Datos de entrada inválidos (viajeros, oferta incompleta). Nunca se reintenta."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message=message, code="VALIDATION_ERROR")
        self.errors = errors or []

    def extra(self) -> dict[str, Any]:
        return {"errors": self.errors} if self.errors else {}


class OfferExpiredError(DomainError):
    """La ventana de validez de la oferta terminó; el cliente debe volver a buscar."""

    def __init__(self, offer_id: str, expired_at: Any = None):
        super().__init__(
            message=f"Flight offer {offer_id} has expired, please search again",
            code="OFFER_EXPIRED",
        )
        self.offer_id = offer_id
        self.expired_at = expired_at


# === Errores de proveedor ===


class ProviderErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    OFFER_EXPIRED = "offer_expired"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


class ProviderError(DomainError):
    """Error 4xx/5xx del proveedor upstream, normalizado a un único tipo."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        detail: str,
        provider: str | None = None,
        http_status: int | None = None,
    ):
        super().__init__(message=detail, code=f"PROVIDER_{kind.value.upper()}")
        self.kind = kind
        self.detail = detail
        self.provider = provider
        self.http_status = http_status

    def extra(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "provider": self.provider}


class TimeoutAmbiguousError(DomainError):
    """La llamada upstream excedió su presupuesto de tiempo; el resultado es desconocido."""

    def __init__(self, operation: str, timeout_seconds: float | None = None, provider: str | None = None):
        super().__init__(
            message=f"Upstream {operation} did not answer in time; outcome unknown",
            code="TIMEOUT_AMBIGUOUS",
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.provider = provider


# === Errores de idempotencia ===


class DuplicateRequestError(DomainError):
    """Ya existe una orden activa para el par (usuario, oferta)."""

    def __init__(self, user_id: str, offer_id: str):
        super().__init__(
            message=f"An active flight order already exists for offer {offer_id}",
            code="DUPLICATE_REQUEST",
        )
        self.user_id = user_id
        self.offer_id = offer_id


class IdempotencyConflictError(DomainError):
    """Mismo Idempotency-Key con un payload distinto."""

    def __init__(self, idem_key: str):
        super().__init__(
            message="Idempotency conflict: different payload for same key",
            code="IDEMPOTENCY_CONFLICT",
        )
        self.idem_key = idem_key


# === Errores de pago ===


class PaymentVerificationFailed(DomainError):
    """El gateway indica que el pago no fue exitoso; nunca se intenta reservar."""

    def __init__(self, transaction_ref: str | None, reason: str | None = None):
        super().__init__(
            message=f"Payment {transaction_ref} was not approved: {reason or 'declined'}",
            code="PAYMENT_VERIFICATION_FAILED",
        )
        self.transaction_ref = transaction_ref
        self.reason = reason


class PostPaymentBookingFailure(DomainError):
    """El pago se cobró pero la reserva falló. Termina reembolsado o escalado a revisión manual."""

    def __init__(self, payment_id: int, refunded: bool, manual_review: bool, reason: str):
        if refunded:
            message = "Booking failed after payment; the full amount has been refunded"
        else:
            message = "Booking failed after payment; the payment was flagged for manual review"
        super().__init__(message=message, code="POST_PAYMENT_BOOKING_FAILURE")
        self.payment_id = payment_id
        self.refunded = refunded
        self.manual_review = manual_review
        self.reason = reason

    def extra(self) -> dict[str, Any]:
        return {
            "paymentId": self.payment_id,
            "refunded": self.refunded,
            "manualReview": self.manual_review,
        }


# === Errores de consulta y estado ===


class NotFoundError(DomainError):
    """El recurso solicitado no existe."""

    def __init__(self, entity: str, identifier: Any):
        super().__init__(message=f"{entity} not found: {identifier}", code="NOT_FOUND")
        self.entity = entity
        self.identifier = identifier


class ForbiddenError(DomainError):
    """El usuario no es dueño del recurso ni administrador."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message=message, code="FORBIDDEN")


class InvalidOrderStateError(DomainError):
    """El estado actual de la orden no permite la operación."""

    def __init__(self, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation}: order is {current_status}",
            code="INVALID_ORDER_STATE",
        )
        self.current_status = current_status
        self.operation = operation
