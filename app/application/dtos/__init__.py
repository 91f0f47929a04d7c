"""DTOs (Data Transfer Objects) de la capa de aplicación."""

from app.application.dtos.order_dto import (
    CancellationOutcome,
    Caller,
    FlightOrderDetails,
    OrderPage,
    RefundQuote,
)
from app.application.dtos.payment_dto import CallbackOutcome, CheckoutResult

__all__ = [
    # Order DTOs
    "Caller",
    "FlightOrderDetails",
    "OrderPage",
    "RefundQuote",
    "CancellationOutcome",
    # Payment DTOs
    "CheckoutResult",
    "CallbackOutcome",
]
