"""DTOs para pagos."""

from dataclasses import dataclass

from app.domain.entities.booking import Booking
from app.domain.entities.flight_order import FlightOrder
from app.domain.entities.payment import Payment


@dataclass
class CheckoutResult:
    """
    Página de cobro creada para un flujo de pago.

    `pending` indica que la orden upstream quedó en estado desconocido (timeout)
    y no se generó cobro; el cliente debe consultar la orden.
    """

    payment: Payment | None = None
    payment_url: str | None = None
    transaction_ref: str | None = None
    order: FlightOrder | None = None
    booking: Booking | None = None
    duplicate: bool = False
    pending: bool = False


@dataclass
class CallbackOutcome:
    """Resultado de procesar el callback del gateway."""

    payment: Payment
    order: FlightOrder | None = None
    booking: Booking | None = None
    already_processed: bool = False
