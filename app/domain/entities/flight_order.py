"""Entidad FlightOrder - registro durable de una reserva upstream."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.entities.provider_order import ProviderOrder
from app.domain.errors import InvalidOrderStateError


class FlightOrderStatus(str, Enum):
    """Estados de la orden de vuelo."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    TICKETED = "ticketed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    EXPIRED = "expired"
    FAILED = "failed"


class TicketingStatus(str, Enum):
    NOT_ISSUED = "not_issued"
    ISSUED = "issued"
    VOIDED = "voided"
    REFUNDED = "refunded"


_TRANSITIONS: dict[FlightOrderStatus, frozenset[FlightOrderStatus]] = {
    FlightOrderStatus.PENDING: frozenset(
        {
            FlightOrderStatus.CONFIRMED,
            FlightOrderStatus.FAILED,
            FlightOrderStatus.EXPIRED,
            FlightOrderStatus.CANCELLED,
        }
    ),
    FlightOrderStatus.CONFIRMED: frozenset(
        {FlightOrderStatus.TICKETED, FlightOrderStatus.CANCELLED, FlightOrderStatus.REFUNDED}
    ),
    FlightOrderStatus.TICKETED: frozenset({FlightOrderStatus.CANCELLED, FlightOrderStatus.REFUNDED}),
    FlightOrderStatus.CANCELLED: frozenset(),
    FlightOrderStatus.REFUNDED: frozenset(),
    FlightOrderStatus.EXPIRED: frozenset(),
    FlightOrderStatus.FAILED: frozenset(),
}

# Estados que liberan el par (usuario, oferta) para una nueva orden.
RELEASED_STATUSES = frozenset({FlightOrderStatus.CANCELLED, FlightOrderStatus.FAILED})

CANCELLABLE_STATUSES = frozenset(
    {FlightOrderStatus.PENDING, FlightOrderStatus.CONFIRMED, FlightOrderStatus.TICKETED}
)


def sources_for(target: FlightOrderStatus) -> frozenset[FlightOrderStatus]:
    """Estados desde los que se puede llegar a `target` (usado en escrituras condicionales)."""
    return frozenset(source for source, targets in _TRANSITIONS.items() if target in targets)


@dataclass
class FlightOrder:
    """
    Orden de vuelo persistida.

    La unicidad (usuario, oferta upstream) para órdenes activas se expresa con
    `active_offer_key`, que la capa de persistencia indexa como único.
    """

    order_number: str
    user_id: str
    provider: ProviderKind
    upstream_offer_id: str

    id: int | None = None
    booking_id: int | None = None
    provider_order_id: str | None = None
    pnr: str | None = None

    status: FlightOrderStatus = FlightOrderStatus.PENDING
    ticketing_status: TicketingStatus = TicketingStatus.NOT_ISSUED
    payment_status: str = "pending"

    total_amount: Decimal = Decimal("0")
    base_amount: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    currency_code: str = "USD"
    amount_paid: Decimal | None = None

    number_of_travelers: int = 0
    contact_email: str | None = None
    contact_phone: str | None = None

    flight_offer_data: dict[str, Any] = field(default_factory=dict)
    itineraries: list[dict[str, Any]] = field(default_factory=list)
    validating_airline: str | None = None
    operating_airlines: list[str] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)
    ticket_numbers: list[str] = field(default_factory=list)
    schedule_changed: bool = False
    new_slices: list[dict[str, Any]] | None = None
    notes: str | None = None

    expires_at: datetime | None = None
    ticketed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # === Propiedades ===

    @property
    def active_offer_key(self) -> str | None:
        if self.status in RELEASED_STATUSES:
            return None
        return f"{self.user_id}:{self.upstream_offer_id}"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]

    def can_transition(self, target: FlightOrderStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def _transition(self, target: FlightOrderStatus, operation: str, now: datetime) -> None:
        if not self.can_transition(target):
            raise InvalidOrderStateError(self.status.value, operation)
        self.status = target
        self.updated_at = now

    # === Métodos de negocio ===

    @classmethod
    def claim(
        cls,
        order_number: str,
        user_id: str,
        offer: FlightOffer,
        number_of_travelers: int,
        contact_email: str | None,
        contact_phone: str | None,
        now: datetime,
    ) -> "FlightOrder":
        """Orden pendiente que reserva el par (usuario, oferta) antes de llamar al proveedor."""
        return cls(
            order_number=order_number,
            user_id=user_id,
            provider=offer.provider,
            upstream_offer_id=offer.id,
            total_amount=offer.price.total,
            base_amount=offer.price.base,
            tax_amount=offer.price.tax,
            currency_code=offer.price.currency,
            number_of_travelers=number_of_travelers,
            contact_email=contact_email,
            contact_phone=contact_phone,
            flight_offer_data=offer.to_snapshot(),
            itineraries=offer.to_snapshot()["itineraries"],
            validating_airline=offer.validating_airline,
            operating_airlines=offer.operating_airlines,
            expires_at=offer.expires_at,
            created_at=now,
            updated_at=now,
        )

    def confirm(self, provider_order: ProviderOrder, now: datetime) -> None:
        self._transition(FlightOrderStatus.CONFIRMED, "confirm order", now)
        self.provider_order_id = provider_order.provider_order_id
        self.pnr = provider_order.booking_reference
        self.documents = list(provider_order.documents)
        self.ticket_numbers = list(provider_order.ticket_numbers)
        if provider_order.total_amount is not None and provider_order.total_amount != self.total_amount:
            # El total confirmado upstream prevalece; el impuesto absorbe la diferencia.
            self.total_amount = provider_order.total_amount
            self.tax_amount = provider_order.total_amount - self.base_amount

    def sync_upstream(self, provider_order: ProviderOrder, now: datetime) -> None:
        """Copia PNR, documentos y boletos que el proveedor emitió después de confirmar."""
        self.pnr = provider_order.booking_reference or self.pnr
        if provider_order.documents:
            self.documents = list(provider_order.documents)
        if provider_order.ticket_numbers:
            self.ticket_numbers = list(provider_order.ticket_numbers)
        self.updated_at = now

    def issue_ticket(self, amount_paid: Decimal, now: datetime) -> None:
        self._transition(FlightOrderStatus.TICKETED, "issue ticket", now)
        self.ticketing_status = TicketingStatus.ISSUED
        self.payment_status = "paid"
        self.amount_paid = amount_paid
        self.ticketed_at = now

    def cancel(self, now: datetime) -> None:
        self._transition(FlightOrderStatus.CANCELLED, "cancel order", now)
        self.cancelled_at = now
        if self.ticketing_status == TicketingStatus.ISSUED:
            self.ticketing_status = TicketingStatus.VOIDED

    def refund(self, now: datetime) -> None:
        self._transition(FlightOrderStatus.REFUNDED, "refund order", now)
        self.cancelled_at = now
        self.ticketing_status = TicketingStatus.REFUNDED
        self.payment_status = "refunded"

    def fail(self, now: datetime, reason: str | None = None) -> None:
        self._transition(FlightOrderStatus.FAILED, "fail order", now)
        self.notes = reason

    def apply_schedule_change(self, slices: list[dict[str, Any]], now: datetime) -> None:
        self.itineraries = slices
        self.new_slices = slices
        self.schedule_changed = True
        self.updated_at = now
