"""Entidad Payment - un intento de transacción en el gateway de pagos."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class PaymentStatus(str, Enum):
    """Estados posibles de un pago."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUND_PENDING = "refund_pending"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentFlow(str, Enum):
    """Orden de la saga: reservar y luego cobrar, o cobrar y luego reservar."""

    BOOK_THEN_PAY = "book_then_pay"
    PAY_THEN_BOOK = "pay_then_book"


@dataclass
class Payment:
    """
    Pago asociado a una reserva.

    En el flujo pay-then-book `booking_id` es None hasta que la reserva se crea;
    la oferta, los viajeros y el contacto viajan en `details`.
    """

    user_id: str
    gateway: str
    amount: Decimal
    currency_code: str
    flow: PaymentFlow

    id: int | None = None
    booking_id: int | None = None
    transaction_ref: str | None = None
    cart_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    refunded_amount: Decimal | None = None
    payment_method: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    gateway_response: dict[str, Any] = field(default_factory=dict)
    needs_manual_review: bool = False

    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # === Métodos de negocio ===

    def complete(self, now: datetime, payment_method: str | None = None) -> None:
        """Marca el pago como cobrado tras la verificación del gateway."""
        if self.status != PaymentStatus.PENDING:
            raise ValueError(f"Cannot complete a payment in status {self.status.value}")
        self.status = PaymentStatus.COMPLETED
        self.paid_at = now
        self.payment_method = payment_method or self.payment_method
        self.updated_at = now

    def fail(self, now: datetime) -> None:
        if self.status != PaymentStatus.PENDING:
            raise ValueError(f"Cannot fail a payment in status {self.status.value}")
        self.status = PaymentStatus.FAILED
        self.updated_at = now

    def start_refund(self, now: datetime) -> None:
        if self.status != PaymentStatus.COMPLETED:
            raise ValueError("Only completed payments can be refunded")
        self.status = PaymentStatus.REFUND_PENDING
        self.updated_at = now

    def mark_refunded(self, amount: Decimal, now: datetime) -> None:
        if self.status not in (PaymentStatus.COMPLETED, PaymentStatus.REFUND_PENDING):
            raise ValueError(f"Cannot refund a payment in status {self.status.value}")
        self.refunded_amount = amount
        self.refunded_at = now
        self.updated_at = now
        self.status = (
            PaymentStatus.REFUNDED if amount >= self.amount else PaymentStatus.PARTIALLY_REFUNDED
        )

    def flag_manual_review(self, reason: str, now: datetime) -> None:
        self.needs_manual_review = True
        self.details = {**self.details, "manualReviewReason": reason}
        self.updated_at = now
