"""Entidad Booking - envoltorio comercial de un producto reservable."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class BookingPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class Booking:
    """
    Reserva comercial. Referencia polimórfica al producto subyacente
    (`product_type`, `product_id`), hoy siempre una FlightOrder.
    """

    booking_number: str
    user_id: str
    total_amount: Decimal
    currency_code: str

    id: int | None = None
    booking_type: str = "flight"
    booking_status: BookingStatus = BookingStatus.PENDING
    payment_status: BookingPaymentStatus = BookingPaymentStatus.PENDING
    payment_method: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    product_type: str = "flight_order"
    product_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def mark_paid(self, now: datetime, payment_method: str | None = None) -> None:
        self.booking_status = BookingStatus.CONFIRMED
        self.payment_status = BookingPaymentStatus.PAID
        self.payment_method = payment_method or self.payment_method
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        self.booking_status = BookingStatus.CANCELLED
        self.updated_at = now

    def mark_refunded(self, now: datetime) -> None:
        self.booking_status = BookingStatus.CANCELLED
        self.payment_status = BookingPaymentStatus.REFUNDED
        self.updated_at = now
