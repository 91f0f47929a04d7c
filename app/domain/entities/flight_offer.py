"""Entidad FlightOffer - propuesta de itinerario con precio, devuelta por un proveedor."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from app.domain.value_objects.money import MINOR_UNIT, quantize, to_decimal

# Ratio provisional cuando el proveedor no informa la tarifa base.
ESTIMATED_BASE_RATIO = Decimal("0.85")

_ISO_DURATION = re.compile(r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?)?$")


class ProviderKind(str, Enum):
    """Forma del proveedor upstream. Se fija al crear la oferta y nunca se infiere del payload."""

    GDS = "gds"
    MODERN = "modern"

    @property
    def provider_name(self) -> str:
        return {ProviderKind.GDS: "amadeus", ProviderKind.MODERN: "duffel"}[self]

    @classmethod
    def from_name(cls, name: str) -> "ProviderKind":
        aliases = {
            "gds": cls.GDS,
            "amadeus": cls.GDS,
            "modern": cls.MODERN,
            "duffel": cls.MODERN,
        }
        try:
            return aliases[name.strip().lower()]
        except KeyError as exc:
            raise ValueError(f"Unknown flight provider: {name}") from exc


def parse_iso_duration(value: str | None) -> int | None:
    """Convierte PT2H35M / P1DT1H a minutos."""
    if not value:
        return None
    match = _ISO_DURATION.match(value.strip().upper())
    if not match:
        return None
    days = int(match.group("days") or 0)
    hours = int(match.group("hours") or 0)
    minutes = int(match.group("minutes") or 0)
    return days * 1440 + hours * 60 + minutes


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class SegmentEndpoint:
    iata_code: str
    at: str
    terminal: str | None = None
    city_name: str | None = None


@dataclass
class OfferSegment:
    departure: SegmentEndpoint
    arrival: SegmentEndpoint
    carrier_code: str
    number: str
    id: str | None = None
    carrier_name: str | None = None
    operating_carrier_code: str | None = None
    operating_number: str | None = None
    aircraft: str | None = None
    duration: str | None = None
    cabin: str = "economy"
    checked_bags: int = 0
    carry_on_bags: int = 1

    @property
    def duration_minutes(self) -> int | None:
        return parse_iso_duration(self.duration)

    @property
    def is_codeshare(self) -> bool:
        return bool(self.operating_carrier_code) and self.operating_carrier_code != self.carrier_code


@dataclass
class OfferSlice:
    segments: list[OfferSegment]
    duration: str | None = None


@dataclass
class OfferPrice:
    currency: str
    base: Decimal
    tax: Decimal
    total: Decimal
    base_estimated: bool = False

    @classmethod
    def from_amounts(cls, currency: str, total: Any, base: Any = None) -> "OfferPrice":
        """Construye el precio manteniendo total = base + tax.

        El total del proveedor es la fuente de verdad; el impuesto se deriva.
        """
        total_dec = quantize(to_decimal(total))
        estimated = base is None or base == ""
        if estimated:
            base_dec = quantize(total_dec * ESTIMATED_BASE_RATIO)
        else:
            base_dec = quantize(to_decimal(base))
        return cls(
            currency=(currency or "USD").upper(),
            base=base_dec,
            tax=total_dec - base_dec,
            total=total_dec,
            base_estimated=estimated,
        )

    def is_consistent(self) -> bool:
        return abs((self.base + self.tax) - self.total) <= MINOR_UNIT


@dataclass
class OfferPassenger:
    """Pasajero de la oferta. `offer_passenger_id` debe reutilizarse tal cual al crear la orden."""

    offer_passenger_id: str | None
    type: str = "adult"


@dataclass
class OfferConditions:
    refund_allowed: bool | None = None
    refund_penalty: Decimal | None = None
    change_allowed: bool | None = None
    change_penalty: Decimal | None = None
    penalty_currency: str | None = None


@dataclass
class FlightOffer:
    """
    Oferta normalizada. Conserva el payload nativo del proveedor en `raw`
    porque reprice y createOrder lo reenvían tal cual.
    """

    id: str
    provider: ProviderKind
    itineraries: list[OfferSlice]
    price: OfferPrice
    raw: dict[str, Any]
    expires_at: datetime | None = None
    passengers: list[OfferPassenger] = field(default_factory=list)
    conditions: OfferConditions = field(default_factory=OfferConditions)
    validating_airline_codes: list[str] = field(default_factory=list)
    last_ticketing_date: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def segments(self) -> list[OfferSegment]:
        return [segment for itinerary in self.itineraries for segment in itinerary.segments]

    @property
    def operating_airlines(self) -> list[str]:
        seen: list[str] = []
        for segment in self.segments:
            code = segment.operating_carrier_code or segment.carrier_code
            if code and code not in seen:
                seen.append(code)
        return seen

    @property
    def validating_airline(self) -> str | None:
        if self.validating_airline_codes:
            return self.validating_airline_codes[0]
        segments = self.segments
        return segments[0].carrier_code if segments else None

    def passenger_ids(self) -> list[str]:
        return [p.offer_passenger_id for p in self.passengers if p.offer_passenger_id]

    # === Snapshot (JSON seguro) ===

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider.value,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "price": {
                "currency": self.price.currency,
                "base": str(self.price.base),
                "tax": str(self.price.tax),
                "total": str(self.price.total),
                "baseEstimated": self.price.base_estimated,
            },
            "itineraries": [
                {
                    "duration": itinerary.duration,
                    "segments": [_segment_snapshot(s) for s in itinerary.segments],
                }
                for itinerary in self.itineraries
            ],
            "passengers": [
                {"offerPassengerId": p.offer_passenger_id, "type": p.type} for p in self.passengers
            ],
            "conditions": {
                "refundAllowed": self.conditions.refund_allowed,
                "refundPenalty": _dec_str(self.conditions.refund_penalty),
                "changeAllowed": self.conditions.change_allowed,
                "changePenalty": _dec_str(self.conditions.change_penalty),
                "penaltyCurrency": self.conditions.penalty_currency,
            },
            "validatingAirlineCodes": list(self.validating_airline_codes),
            "lastTicketingDate": self.last_ticketing_date,
            "raw": self.raw,
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "FlightOffer":
        price = data["price"]
        conditions = data.get("conditions") or {}
        return cls(
            id=data["id"],
            provider=ProviderKind(data["provider"]),
            expires_at=_parse_datetime(data.get("expiresAt")),
            price=OfferPrice(
                currency=price["currency"],
                base=to_decimal(price["base"]),
                tax=to_decimal(price["tax"]),
                total=to_decimal(price["total"]),
                base_estimated=bool(price.get("baseEstimated", False)),
            ),
            itineraries=[
                OfferSlice(
                    duration=itinerary.get("duration"),
                    segments=[_segment_from_snapshot(s) for s in itinerary.get("segments", [])],
                )
                for itinerary in data.get("itineraries", [])
            ],
            passengers=[
                OfferPassenger(offer_passenger_id=p.get("offerPassengerId"), type=p.get("type", "adult"))
                for p in data.get("passengers", [])
            ],
            conditions=OfferConditions(
                refund_allowed=conditions.get("refundAllowed"),
                refund_penalty=_opt_dec(conditions.get("refundPenalty")),
                change_allowed=conditions.get("changeAllowed"),
                change_penalty=_opt_dec(conditions.get("changePenalty")),
                penalty_currency=conditions.get("penaltyCurrency"),
            ),
            validating_airline_codes=list(data.get("validatingAirlineCodes") or []),
            last_ticketing_date=data.get("lastTicketingDate"),
            raw=data.get("raw") or {},
        )


def _dec_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _opt_dec(value: Any) -> Decimal | None:
    return to_decimal(value) if value not in (None, "") else None


def _endpoint_snapshot(endpoint: SegmentEndpoint) -> dict[str, Any]:
    return {
        "iataCode": endpoint.iata_code,
        "at": endpoint.at,
        "terminal": endpoint.terminal,
        "cityName": endpoint.city_name,
    }


def _segment_snapshot(segment: OfferSegment) -> dict[str, Any]:
    return {
        "id": segment.id,
        "departure": _endpoint_snapshot(segment.departure),
        "arrival": _endpoint_snapshot(segment.arrival),
        "carrierCode": segment.carrier_code,
        "carrierName": segment.carrier_name,
        "number": segment.number,
        "operatingCarrierCode": segment.operating_carrier_code,
        "operatingNumber": segment.operating_number,
        "aircraft": segment.aircraft,
        "duration": segment.duration,
        "cabin": segment.cabin,
        "checkedBags": segment.checked_bags,
        "carryOnBags": segment.carry_on_bags,
    }


def _endpoint_from_snapshot(data: dict[str, Any]) -> SegmentEndpoint:
    return SegmentEndpoint(
        iata_code=data["iataCode"],
        at=data["at"],
        terminal=data.get("terminal"),
        city_name=data.get("cityName"),
    )


def _segment_from_snapshot(data: dict[str, Any]) -> OfferSegment:
    return OfferSegment(
        id=data.get("id"),
        departure=_endpoint_from_snapshot(data["departure"]),
        arrival=_endpoint_from_snapshot(data["arrival"]),
        carrier_code=data["carrierCode"],
        carrier_name=data.get("carrierName"),
        number=str(data["number"]),
        operating_carrier_code=data.get("operatingCarrierCode"),
        operating_number=data.get("operatingNumber"),
        aircraft=data.get("aircraft"),
        duration=data.get("duration"),
        cabin=data.get("cabin") or "economy",
        checked_bags=int(data.get("checkedBags") or 0),
        carry_on_bags=int(data.get("carryOnBags") if data.get("carryOnBags") is not None else 1),
    )
