"""Resultados normalizados de operaciones de orden en los proveedores."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.domain.entities.flight_offer import ProviderKind


@dataclass
class ProviderOrder:
    """Orden upstream normalizada (ambos proveedores)."""

    provider_order_id: str
    provider: ProviderKind
    booking_reference: str | None = None
    total_amount: Decimal | None = None
    currency: str | None = None
    documents: list[dict[str, Any]] = field(default_factory=list)
    ticket_numbers: list[str] = field(default_factory=list)
    slices: list[dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class CancellationResult:
    provider_order_id: str
    provider: ProviderKind
    cancellation_id: str | None = None
    refund_amount: Decimal | None = None
    refund_currency: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class Place:
    code: str | None
    name: str | None
    type: str
    city: str | None = None
    country: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None


@dataclass
class AncillaryService:
    id: str
    type: str
    name: str
    amount: Decimal | None
    currency: str | None
    description: str | None = None
    passenger_id: str | None = None
    segment_id: str | None = None


@dataclass
class OrderChangeOffer:
    id: str
    new_total_amount: Decimal | None
    change_total_amount: Decimal | None
    penalty_amount: Decimal | None
    currency: str | None
    expires_at: str | None = None
    new_slices: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class OrderChangeResult:
    change_id: str
    provider_order_id: str | None
    status: str | None
    new_total_amount: Decimal | None = None
    currency: str | None = None
    refund_amount: Decimal | None = None
