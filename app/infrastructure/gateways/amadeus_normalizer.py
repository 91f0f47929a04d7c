"""Maps Amadeus (GDS-style) payloads onto the internal offer/order model."""

from decimal import Decimal
from typing import Any

from app.domain.entities.flight_offer import (
    FlightOffer,
    OfferPassenger,
    OfferPrice,
    OfferSegment,
    OfferSlice,
    ProviderKind,
    SegmentEndpoint,
)
from app.domain.entities.provider_order import CancellationResult, Place, ProviderOrder
from app.domain.value_objects.money import to_decimal

_TRAVELER_TYPES = {
    "ADULT": "adult",
    "CHILD": "child",
    "SENIOR": "adult",
    "HELD_INFANT": "infant",
    "SEATED_INFANT": "infant",
}


def _endpoint(raw: dict[str, Any] | None) -> SegmentEndpoint:
    raw = raw or {}
    return SegmentEndpoint(iata_code=raw.get("iataCode", ""), at=raw.get("at", ""), terminal=raw.get("terminal"))


def _fare_details(raw_offer: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Cabin and baggage live per traveler pricing; the first traveler is representative."""
    pricings = raw_offer.get("travelerPricings") or []
    if not pricings:
        return {}
    return {d.get("segmentId"): d for d in pricings[0].get("fareDetailsBySegment") or []}


def _checked_bags(details: dict[str, Any]) -> int:
    bags = details.get("includedCheckedBags") or {}
    if bags.get("quantity") is not None:
        return int(bags["quantity"])
    # Weight-based allowance means one checked piece.
    return 1 if bags.get("weight") else 0


def _segment(raw: dict[str, Any], fare_details: dict[str, dict[str, Any]]) -> OfferSegment:
    details = fare_details.get(raw.get("id"), {})
    operating = raw.get("operating") or {}
    aircraft = raw.get("aircraft") or {}
    return OfferSegment(
        id=raw.get("id"),
        departure=_endpoint(raw.get("departure")),
        arrival=_endpoint(raw.get("arrival")),
        carrier_code=raw.get("carrierCode", ""),
        number=str(raw.get("number") or ""),
        operating_carrier_code=operating.get("carrierCode"),
        aircraft=aircraft.get("code"),
        duration=raw.get("duration"),
        cabin=(details.get("cabin") or "ECONOMY").lower(),
        checked_bags=_checked_bags(details),
    )


def normalize_offer(raw: dict[str, Any]) -> FlightOffer:
    fare_details = _fare_details(raw)
    price = raw.get("price") or {}
    return FlightOffer(
        id=str(raw["id"]),
        provider=ProviderKind.GDS,
        itineraries=[
            OfferSlice(
                duration=itinerary.get("duration"),
                segments=[_segment(s, fare_details) for s in itinerary.get("segments", [])],
            )
            for itinerary in raw.get("itineraries", [])
        ],
        price=OfferPrice.from_amounts(
            price.get("currency"), price.get("grandTotal") or price.get("total"), price.get("base")
        ),
        raw=raw,
        passengers=[
            OfferPassenger(
                offer_passenger_id=str(tp.get("travelerId")) if tp.get("travelerId") else None,
                type=_TRAVELER_TYPES.get(tp.get("travelerType"), "adult"),
            )
            for tp in raw.get("travelerPricings") or []
        ],
        validating_airline_codes=list(raw.get("validatingAirlineCodes") or []),
        last_ticketing_date=raw.get("lastTicketingDate"),
    )


def normalize_order(raw: dict[str, Any]) -> ProviderOrder:
    records = raw.get("associatedRecords") or []
    offers = raw.get("flightOffers") or []
    price = (offers[0].get("price") or {}) if offers else {}
    total = price.get("grandTotal") or price.get("total")
    tickets = raw.get("tickets") or []
    return ProviderOrder(
        provider_order_id=raw["id"],
        provider=ProviderKind.GDS,
        booking_reference=records[0].get("reference") if records else None,
        total_amount=to_decimal(total) if total not in (None, "") else None,
        currency=price.get("currency"),
        documents=[
            {"type": ticket.get("documentType", "ETICKET"), "uniqueIdentifier": ticket.get("documentNumber")}
            for ticket in tickets
        ],
        ticket_numbers=[t["documentNumber"] for t in tickets if t.get("documentNumber")],
        slices=offers[0].get("itineraries", []) if offers else [],
        raw=raw,
    )


def normalize_cancellation(provider_order_id: str, raw: dict[str, Any] | None = None) -> CancellationResult:
    # DELETE answers 204 with no body; refunds are settled outside the GDS.
    return CancellationResult(
        provider_order_id=provider_order_id,
        provider=ProviderKind.GDS,
        refund_amount=None if raw is None else _optional_amount(raw.get("refundAmount")),
        raw=raw or {},
    )


def _optional_amount(value: Any) -> Decimal | None:
    return to_decimal(value) if value not in (None, "") else None


def normalize_location(raw: dict[str, Any]) -> Place:
    address = raw.get("address") or {}
    geo = raw.get("geoCode") or {}
    return Place(
        code=raw.get("iataCode"),
        name=raw.get("name"),
        type=raw.get("subType") or "AIRPORT",
        city=address.get("cityName"),
        country=address.get("countryName"),
        country_code=address.get("countryCode"),
        latitude=geo.get("latitude"),
        longitude=geo.get("longitude"),
        timezone=raw.get("timeZoneOffset"),
    )
