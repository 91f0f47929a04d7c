import asyncio
import random
import string
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.flight_provider import FlightProviderClient, SearchCriteria
from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.entities.provider_order import (
    AncillaryService,
    CancellationResult,
    OrderChangeOffer,
    OrderChangeResult,
    Place,
    ProviderOrder,
)
from app.domain.entities.traveler import ContactInfo, Traveler
from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.gateways import amadeus_normalizer, duffel_normalizer

OFFER_TTL = timedelta(minutes=30)

_PLACES = [
    {"iata_code": "JFK", "name": "John F. Kennedy International Airport", "city_name": "New York", "country": "US"},
    {"iata_code": "LAX", "name": "Los Angeles International Airport", "city_name": "Los Angeles", "country": "US"},
    {"iata_code": "MIA", "name": "Miami International Airport", "city_name": "Miami", "country": "US"},
    {"iata_code": "MEX", "name": "Mexico City International Airport", "city_name": "Mexico City", "country": "MX"},
    {"iata_code": "MAD", "name": "Adolfo Suarez Madrid-Barajas Airport", "city_name": "Madrid", "country": "ES"},
    {"iata_code": "LHR", "name": "Heathrow Airport", "city_name": "London", "country": "GB"},
]

# (carrier, flight number, departure hour, total, base)
_FARES = [
    ("AA", "100", 8, "320.50", "272.43"),
    ("DL", "421", 13, "289.90", "246.41"),
]


def _booking_reference() -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=6))


def _matching_places(keyword: str) -> list[dict[str, str]]:
    needle = keyword.strip().lower()
    return [
        place
        for place in _PLACES
        if needle in place["iata_code"].lower() or needle in place["city_name"].lower()
    ]


class StubFlightProvider(FlightProviderClient):
    """
    Offline provider used by tests and local runs without credentials.

    Payloads are shaped like the real upstream and go through the real
    normalizers. `calls` counts every operation; `create_order_error` and
    `create_order_delay` simulate a failing or hanging upstream.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self.calls: Counter[str] = Counter()
        self.create_order_error: Exception | None = None
        self.create_order_delay = 0.0
        self.cancel_error: Exception | None = None
        self.reprice_total: str | None = None
        self.orders: dict[str, dict[str, Any]] = {}
        self.cancelled: list[str] = []

    def _raw_order(self, order_id: str, offer: FlightOffer, travelers: list[Traveler]) -> dict[str, Any]:
        raise NotImplementedError

    def _normalize_order(self, raw: dict[str, Any]) -> ProviderOrder:
        raise NotImplementedError

    async def create_order(
        self,
        offer: FlightOffer,
        travelers: list[Traveler],
        contact: ContactInfo,
        remarks: str | None = None,
    ) -> ProviderOrder:
        self.calls["create_order"] += 1
        if self.create_order_delay:
            await asyncio.sleep(self.create_order_delay)
        if self.create_order_error is not None:
            raise self.create_order_error
        order_id = f"{self.kind.provider_name[:3]}_ord_{uuid4().hex[:10]}"
        raw = self._raw_order(order_id, offer, travelers)
        self.orders[order_id] = raw
        return self._normalize_order(raw)

    async def get_order(self, provider_order_id: str) -> ProviderOrder:
        self.calls["get_order"] += 1
        raw = self.orders.get(provider_order_id)
        if raw is None:
            raise ProviderError(
                ProviderErrorKind.INVALID_REQUEST, f"order {provider_order_id} not found", self.name, 404
            )
        return self._normalize_order(raw)

    def _expiry(self) -> datetime:
        return self._clock.now() + OFFER_TTL


class StubDuffelProvider(StubFlightProvider):
    kind = ProviderKind.MODERN

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self.change_offers: dict[str, dict[str, Any]] = {}
        self.change_payments: list[dict[str, Any]] = []

    def raw_offer(self, criteria: SearchCriteria, fare: tuple = _FARES[0]) -> dict[str, Any]:
        carrier, number, hour, total, base = fare
        passengers = [
            {"id": f"pas_{index:04d}", "type": passenger_type}
            for index, passenger_type in enumerate(
                ["adult"] * criteria.adults
                + ["child"] * criteria.children
                + ["infant_without_seat"] * criteria.infants,
                start=1,
            )
        ]
        slices = [
            self._raw_slice(criteria.origin, criteria.destination, criteria.departure_date, carrier, number, hour)
        ]
        if criteria.return_date:
            slices.append(
                self._raw_slice(criteria.destination, criteria.origin, criteria.return_date, carrier, number, hour)
            )
        return {
            "id": f"off_{uuid4().hex[:12]}",
            "total_amount": total,
            "base_amount": base,
            "tax_amount": str(Decimal(total) - Decimal(base)),
            "total_currency": criteria.currency_code,
            "expires_at": self._expiry().isoformat(),
            "owner": {"iata_code": carrier, "name": carrier},
            "passengers": passengers,
            "slices": slices,
            "conditions": {
                "refund_before_departure": {"allowed": True, "penalty_amount": "50.00", "penalty_currency": "USD"},
                "change_before_departure": {"allowed": True, "penalty_amount": "75.00", "penalty_currency": "USD"},
            },
        }

    @staticmethod
    def _raw_slice(
        origin: str, destination: str, day: str, carrier: str, number: str, hour: int
    ) -> dict[str, Any]:
        return {
            "duration": "PT5H30M",
            "segments": [
                {
                    "id": f"seg_{uuid4().hex[:8]}",
                    "origin": {"iata_code": origin, "city_name": origin},
                    "destination": {"iata_code": destination, "city_name": destination},
                    "departing_at": f"{day}T{hour:02d}:00:00",
                    "arriving_at": f"{day}T{hour + 5:02d}:30:00",
                    "marketing_carrier": {"iata_code": carrier, "name": carrier},
                    "operating_carrier": {"iata_code": carrier},
                    "marketing_carrier_flight_number": number,
                    "aircraft": {"name": "Airbus A321"},
                    "duration": "PT5H30M",
                    "passengers": [
                        {
                            "cabin_class": "economy",
                            "baggages": [{"type": "checked", "quantity": 1}, {"type": "carry_on", "quantity": 1}],
                        }
                    ],
                }
            ],
        }

    def normalize_offer(self, raw: dict[str, Any]) -> FlightOffer:
        return duffel_normalizer.normalize_offer(raw)

    async def search(self, criteria: SearchCriteria) -> list[FlightOffer]:
        self.calls["search"] += 1
        return [duffel_normalizer.normalize_offer(self.raw_offer(criteria, fare)) for fare in _FARES]

    async def reprice(self, offer: FlightOffer) -> FlightOffer:
        self.calls["reprice"] += 1
        raw = dict(offer.raw)
        if self.reprice_total is not None:
            raw["total_amount"] = self.reprice_total
        return duffel_normalizer.normalize_offer(raw)

    def _raw_order(self, order_id: str, offer: FlightOffer, travelers: list[Traveler]) -> dict[str, Any]:
        return {
            "id": order_id,
            "booking_reference": _booking_reference(),
            "total_amount": str(offer.price.total),
            "total_currency": offer.price.currency,
            "slices": offer.raw.get("slices", []),
            "documents": [
                {"type": "electronic_ticket", "unique_identifier": f"00174{random.randint(10**7, 10**8 - 1)}"}
                for _ in travelers
            ],
        }

    def _normalize_order(self, raw: dict[str, Any]) -> ProviderOrder:
        return duffel_normalizer.normalize_order(raw)

    async def cancel_order(self, provider_order_id: str) -> CancellationResult:
        self.calls["cancel_order"] += 1
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append(provider_order_id)
        order = self.orders.get(provider_order_id, {})
        return duffel_normalizer.normalize_cancellation(
            {
                "id": f"ore_{uuid4().hex[:10]}",
                "order_id": provider_order_id,
                "refund_amount": order.get("total_amount"),
                "refund_currency": order.get("total_currency"),
            },
            provider_order_id,
        )

    async def search_locations(self, keyword: str) -> list[Place]:
        self.calls["search_locations"] += 1
        return [
            duffel_normalizer.normalize_place(
                {
                    "type": "airport",
                    "iata_code": place["iata_code"],
                    "name": place["name"],
                    "city_name": place["city_name"],
                    "iata_country_code": place["country"],
                }
            )
            for place in _matching_places(keyword)
        ]

    async def get_seat_maps(self, offer: FlightOffer) -> list[dict[str, Any]]:
        self.calls["get_seat_maps"] += 1
        return [{"id": f"sea_{segment.id}", "segment_id": segment.id, "cabins": []} for segment in offer.segments]

    async def get_ancillaries(self, offer_id: str) -> list[AncillaryService]:
        self.calls["get_ancillaries"] += 1
        return [
            duffel_normalizer.normalize_service(
                {
                    "id": "ase_bag_1",
                    "type": "baggage",
                    "total_amount": "45.00",
                    "total_currency": "USD",
                    "passenger_ids": ["pas_0001"],
                    "metadata": {"name": "Checked bag", "description": "23kg"},
                }
            )
        ]

    async def get_order_change_options(
        self, provider_order_id: str, changes: dict[str, Any]
    ) -> list[OrderChangeOffer]:
        self.calls["get_order_change_options"] += 1
        order = self.orders.get(provider_order_id, {})
        total = Decimal(order.get("total_amount") or "0")
        change_offer_id = f"oco_{uuid4().hex[:10]}"
        self.change_offers[change_offer_id] = {
            "order_id": provider_order_id,
            "new_total_amount": str(total + Decimal("75.00")),
            "new_total_currency": order.get("total_currency") or "USD",
        }
        return [
            duffel_normalizer.normalize_change_offer(
                {
                    "id": change_offer_id,
                    **self.change_offers[change_offer_id],
                    "change_total_amount": "75.00",
                    "penalty_total_amount": "75.00",
                    "slices": {"add": changes.get("slices") or []},
                }
            )
        ]

    async def confirm_order_change(self, change_offer_id: str, payment: dict[str, Any]) -> OrderChangeResult:
        self.calls["confirm_order_change"] += 1
        self.change_payments.append(payment)
        change_offer = self.change_offers[change_offer_id]
        return duffel_normalizer.normalize_change(
            {"id": f"oce_{uuid4().hex[:10]}", "status": "confirmed", **change_offer}
        )


class StubAmadeusProvider(StubFlightProvider):
    kind = ProviderKind.GDS

    def raw_offer(self, criteria: SearchCriteria, fare: tuple = _FARES[0], offer_id: str = "1") -> dict[str, Any]:
        carrier, number, hour, total, base = fare
        flight = (carrier, number, hour)
        itineraries = [
            self._raw_itinerary("1", criteria.origin, criteria.destination, criteria.departure_date, *flight)
        ]
        if criteria.return_date:
            itineraries.append(
                self._raw_itinerary("2", criteria.destination, criteria.origin, criteria.return_date, *flight)
            )
        segment_ids = [segment["id"] for itinerary in itineraries for segment in itinerary["segments"]]
        travelers = ["ADULT"] * criteria.adults + ["CHILD"] * criteria.children + ["HELD_INFANT"] * criteria.infants
        return {
            "type": "flight-offer",
            "id": offer_id,
            "source": "GDS",
            "lastTicketingDate": criteria.departure_date,
            "itineraries": itineraries,
            "price": {"currency": criteria.currency_code, "total": total, "base": base, "grandTotal": total},
            "validatingAirlineCodes": [carrier],
            "travelerPricings": [
                {
                    "travelerId": str(index),
                    "travelerType": traveler_type,
                    "fareDetailsBySegment": [
                        {
                            "segmentId": segment_id,
                            "cabin": criteria.travel_class,
                            "includedCheckedBags": {"quantity": 1},
                        }
                        for segment_id in segment_ids
                    ],
                }
                for index, traveler_type in enumerate(travelers, start=1)
            ],
        }

    @staticmethod
    def _raw_itinerary(
        segment_id: str, origin: str, destination: str, day: str, carrier: str, number: str, hour: int
    ) -> dict[str, Any]:
        return {
            "duration": "PT5H30M",
            "segments": [
                {
                    "id": segment_id,
                    "departure": {"iataCode": origin, "at": f"{day}T{hour:02d}:00:00"},
                    "arrival": {"iataCode": destination, "at": f"{day}T{hour + 5:02d}:30:00"},
                    "carrierCode": carrier,
                    "number": number,
                    "aircraft": {"code": "321"},
                    "operating": {"carrierCode": carrier},
                    "duration": "PT5H30M",
                }
            ],
        }

    def normalize_offer(self, raw: dict[str, Any]) -> FlightOffer:
        return amadeus_normalizer.normalize_offer(raw)

    async def search(self, criteria: SearchCriteria) -> list[FlightOffer]:
        self.calls["search"] += 1
        return [
            amadeus_normalizer.normalize_offer(self.raw_offer(criteria, fare, offer_id=str(index)))
            for index, fare in enumerate(_FARES, start=1)
        ]

    async def reprice(self, offer: FlightOffer) -> FlightOffer:
        self.calls["reprice"] += 1
        raw = dict(offer.raw)
        if self.reprice_total is not None:
            raw["price"] = {**raw.get("price", {}), "grandTotal": self.reprice_total, "total": self.reprice_total}
        return amadeus_normalizer.normalize_offer(raw)

    def _raw_order(self, order_id: str, offer: FlightOffer, travelers: list[Traveler]) -> dict[str, Any]:
        return {
            "id": order_id,
            "associatedRecords": [{"reference": _booking_reference(), "originSystemCode": "GDS"}],
            "flightOffers": [offer.raw],
            "tickets": [],
        }

    def _normalize_order(self, raw: dict[str, Any]) -> ProviderOrder:
        return amadeus_normalizer.normalize_order(raw)

    async def cancel_order(self, provider_order_id: str) -> CancellationResult:
        self.calls["cancel_order"] += 1
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append(provider_order_id)
        return amadeus_normalizer.normalize_cancellation(provider_order_id)

    async def search_locations(self, keyword: str) -> list[Place]:
        self.calls["search_locations"] += 1
        return [
            amadeus_normalizer.normalize_location(
                {
                    "subType": "AIRPORT",
                    "iataCode": place["iata_code"],
                    "name": place["name"].upper(),
                    "address": {"cityName": place["city_name"].upper(), "countryCode": place["country"]},
                }
            )
            for place in _matching_places(keyword)
        ]

    async def get_seat_maps(self, offer: FlightOffer) -> list[dict[str, Any]]:
        self.calls["get_seat_maps"] += 1
        return [{"type": "seatmap", "segmentId": segment.id, "decks": []} for segment in offer.segments]
