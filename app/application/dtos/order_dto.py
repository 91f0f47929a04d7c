"""DTOs para órdenes de vuelo."""

from dataclasses import dataclass, field
from decimal import Decimal

from app.domain.entities.booking import Booking
from app.domain.entities.flight_order import FlightOrder
from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.traveler import Traveler


@dataclass(frozen=True)
class Caller:
    """Usuario que origina la solicitud (la autenticación es externa)."""

    user_id: str
    is_admin: bool = False

    def can_access(self, owner_id: str) -> bool:
        return self.is_admin or self.user_id == owner_id


@dataclass
class FlightOrderDetails:
    """Orden con sus filas normalizadas."""

    order: FlightOrder
    booking: Booking | None = None
    travelers: list[Traveler] = field(default_factory=list)
    segments: list[FlightSegment] = field(default_factory=list)


@dataclass
class OrderPage:
    items: list[FlightOrder]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass
class RefundQuote:
    refundable: bool
    penalty_amount: Decimal
    estimated_refund: Decimal
    currency: str


@dataclass
class CancellationOutcome:
    order: FlightOrder
    refund_amount: Decimal | None = None
    refund_currency: str | None = None
