"""Maps Duffel (modern REST) payloads onto the internal offer/order model."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from app.domain.entities.flight_offer import (
    FlightOffer,
    OfferConditions,
    OfferPassenger,
    OfferPrice,
    OfferSegment,
    OfferSlice,
    ProviderKind,
    SegmentEndpoint,
)
from app.domain.entities.provider_order import (
    AncillaryService,
    CancellationResult,
    OrderChangeOffer,
    OrderChangeResult,
    Place,
    ProviderOrder,
)
from app.domain.value_objects.money import to_decimal

_PASSENGER_TYPES = {"adult": "adult", "child": "child", "infant_without_seat": "infant"}


def _optional_decimal(value: Any) -> Decimal | None:
    return to_decimal(value) if value not in (None, "") else None


def _parse_expiry(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _endpoint(place: dict[str, Any] | None, at: str, terminal: str | None) -> SegmentEndpoint:
    place = place or {}
    return SegmentEndpoint(
        iata_code=place.get("iata_code", ""),
        at=at,
        terminal=terminal,
        city_name=place.get("city_name"),
    )


def _baggage(segment_passenger: dict[str, Any], kind: str, default: int) -> int:
    baggages = segment_passenger.get("baggages")
    if baggages is None:
        return default
    return sum(int(b.get("quantity") or 0) for b in baggages if b.get("type") == kind)


def _segment(raw: dict[str, Any]) -> OfferSegment:
    marketing = raw.get("marketing_carrier") or {}
    operating = raw.get("operating_carrier") or {}
    aircraft = raw.get("aircraft") or {}
    passengers = raw.get("passengers") or []
    first_passenger = passengers[0] if passengers else {}
    return OfferSegment(
        id=raw.get("id"),
        departure=_endpoint(raw.get("origin"), raw.get("departing_at", ""), raw.get("origin_terminal")),
        arrival=_endpoint(raw.get("destination"), raw.get("arriving_at", ""), raw.get("destination_terminal")),
        carrier_code=marketing.get("iata_code", ""),
        carrier_name=marketing.get("name"),
        number=str(raw.get("marketing_carrier_flight_number") or ""),
        operating_carrier_code=operating.get("iata_code"),
        operating_number=raw.get("operating_carrier_flight_number"),
        aircraft=aircraft.get("name") or aircraft.get("iata_code"),
        duration=raw.get("duration"),
        cabin=(first_passenger.get("cabin_class") or "economy").lower(),
        checked_bags=_baggage(first_passenger, "checked", 0),
        carry_on_bags=_baggage(first_passenger, "carry_on", 1),
    )


def _conditions(raw: dict[str, Any] | None) -> OfferConditions:
    raw = raw or {}
    refund = raw.get("refund_before_departure") or {}
    change = raw.get("change_before_departure") or {}
    return OfferConditions(
        refund_allowed=refund.get("allowed") if refund else None,
        refund_penalty=_optional_decimal(refund.get("penalty_amount")),
        change_allowed=change.get("allowed") if change else None,
        change_penalty=_optional_decimal(change.get("penalty_amount")),
        penalty_currency=refund.get("penalty_currency") or change.get("penalty_currency"),
    )


def normalize_offer(raw: dict[str, Any]) -> FlightOffer:
    owner = raw.get("owner") or {}
    return FlightOffer(
        id=raw["id"],
        provider=ProviderKind.MODERN,
        itineraries=[
            OfferSlice(duration=s.get("duration"), segments=[_segment(seg) for seg in s.get("segments", [])])
            for s in raw.get("slices", [])
        ],
        price=OfferPrice.from_amounts(raw.get("total_currency"), raw.get("total_amount"), raw.get("base_amount")),
        raw=raw,
        expires_at=_parse_expiry(raw.get("expires_at")),
        passengers=[
            OfferPassenger(offer_passenger_id=p.get("id"), type=_PASSENGER_TYPES.get(p.get("type"), "adult"))
            for p in raw.get("passengers", [])
        ],
        conditions=_conditions(raw.get("conditions")),
        validating_airline_codes=[owner["iata_code"]] if owner.get("iata_code") else [],
    )


def normalize_order(raw: dict[str, Any]) -> ProviderOrder:
    documents = [
        {"type": doc.get("type"), "uniqueIdentifier": doc.get("unique_identifier"), "url": doc.get("url")}
        for doc in raw.get("documents") or []
    ]
    return ProviderOrder(
        provider_order_id=raw["id"],
        provider=ProviderKind.MODERN,
        booking_reference=raw.get("booking_reference"),
        total_amount=_optional_decimal(raw.get("total_amount")),
        currency=raw.get("total_currency"),
        documents=documents,
        ticket_numbers=[
            doc["uniqueIdentifier"]
            for doc in documents
            if doc["type"] == "electronic_ticket" and doc["uniqueIdentifier"]
        ],
        slices=raw.get("slices") or [],
        cancelled=bool(raw.get("cancelled_at")),
        raw=raw,
    )


def normalize_cancellation(raw: dict[str, Any], provider_order_id: str) -> CancellationResult:
    return CancellationResult(
        provider_order_id=raw.get("order_id") or provider_order_id,
        provider=ProviderKind.MODERN,
        cancellation_id=raw.get("id"),
        refund_amount=_optional_decimal(raw.get("refund_amount")),
        refund_currency=raw.get("refund_currency"),
        raw=raw,
    )


def normalize_place(raw: dict[str, Any]) -> Place:
    city = raw.get("city") or {}
    return Place(
        code=raw.get("iata_code") or raw.get("iata_city_code"),
        name=raw.get("name"),
        type="AIRPORT" if raw.get("type") == "airport" else "CITY",
        city=raw.get("city_name") or city.get("name"),
        country=raw.get("iata_country_code"),
        country_code=raw.get("iata_country_code"),
        latitude=raw.get("latitude"),
        longitude=raw.get("longitude"),
        timezone=raw.get("time_zone"),
    )


def normalize_service(raw: dict[str, Any]) -> AncillaryService:
    metadata = raw.get("metadata") or {}
    passenger_ids = raw.get("passenger_ids") or []
    segment_ids = raw.get("segment_ids") or []
    return AncillaryService(
        id=raw["id"],
        type=raw.get("type", ""),
        name=metadata.get("name") or raw.get("type", ""),
        amount=to_decimal(raw.get("total_amount")),
        currency=raw.get("total_currency", ""),
        description=metadata.get("description"),
        passenger_id=raw.get("passenger_id") or (passenger_ids[0] if passenger_ids else None),
        segment_id=raw.get("segment_id") or (segment_ids[0] if segment_ids else None),
    )


def _change_slices(slices: Any) -> list[dict[str, Any]]:
    # Change offers describe slices as {"add": [...], "remove": [...]}.
    if isinstance(slices, dict):
        return slices.get("add") or []
    return slices or []


def normalize_change_offer(raw: dict[str, Any]) -> OrderChangeOffer:
    return OrderChangeOffer(
        id=raw["id"],
        new_total_amount=_optional_decimal(raw.get("new_total_amount")),
        change_total_amount=_optional_decimal(raw.get("change_total_amount")),
        penalty_amount=_optional_decimal(raw.get("penalty_total_amount")),
        currency=raw.get("new_total_currency"),
        expires_at=raw.get("expires_at"),
        new_slices=_change_slices(raw.get("slices")),
    )


def normalize_change(raw: dict[str, Any]) -> OrderChangeResult:
    return OrderChangeResult(
        change_id=raw["id"],
        provider_order_id=raw.get("order_id"),
        status=raw.get("status") or ("confirmed" if raw.get("confirmed_at") else None),
        new_total_amount=_optional_decimal(raw.get("new_total_amount")),
        currency=raw.get("new_total_currency"),
        refund_amount=_optional_decimal(raw.get("refund_to_original_payment_amount") or raw.get("refund_amount")),
    )
