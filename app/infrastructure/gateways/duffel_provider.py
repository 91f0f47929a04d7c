import re
from typing import Any

from app.application.interfaces.flight_provider import SearchCriteria
from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.entities.provider_order import (
    AncillaryService,
    CancellationResult,
    OrderChangeOffer,
    OrderChangeResult,
    Place,
    ProviderOrder,
)
from app.domain.entities.traveler import ContactInfo, Gender, Traveler
from app.infrastructure.circuit_breaker import duffel_breaker
from app.infrastructure.gateways import duffel_normalizer
from app.infrastructure.gateways.provider_http import HttpFlightProvider

DUFFEL_BASE_URL = "https://api.duffel.com"
DUFFEL_VERSION = "v2"

_NON_DIGITS = re.compile(r"[^\d+]")
_PASSENGER_TYPES = (("adults", "adult"), ("children", "child"), ("infants", "infant_without_seat"))


def build_offer_request(criteria: SearchCriteria) -> dict[str, Any]:
    slices = [
        {
            "origin": criteria.origin,
            "destination": criteria.destination,
            "departure_date": criteria.departure_date,
        }
    ]
    if criteria.return_date:
        slices.append(
            {
                "origin": criteria.destination,
                "destination": criteria.origin,
                "departure_date": criteria.return_date,
            }
        )
    passengers = [
        {"type": passenger_type}
        for attribute, passenger_type in _PASSENGER_TYPES
        for _ in range(getattr(criteria, attribute))
    ]
    return {
        "data": {
            "slices": slices,
            "passengers": passengers,
            "cabin_class": criteria.travel_class.lower(),
            "max_connections": 0 if criteria.non_stop else 2,
        }
    }


def format_phone(number: str | None, country_code: str | None) -> str | None:
    """Duffel wants E.164: +<country><number>."""
    cleaned = _NON_DIGITS.sub("", number or "")
    if not cleaned:
        return None
    if cleaned.startswith("+"):
        return cleaned
    prefix = (country_code or "1").lstrip("+")
    return f"+{prefix}{cleaned}"


def _passenger(traveler: Traveler, contact: ContactInfo) -> dict[str, Any]:
    is_male = (traveler.gender or "").upper() == Gender.MALE.value
    passenger: dict[str, Any] = {
        # Offer-scoped id; Duffel rejects the order if it does not match the offer.
        "id": traveler.offer_passenger_id,
        "title": (traveler.title or ("mr" if is_male else "ms")).lower(),
        "gender": "m" if is_male else "f",
        "given_name": traveler.first_name.upper(),
        "family_name": traveler.last_name.upper(),
        "born_on": traveler.date_of_birth,
        "email": traveler.email or contact.email,
        "identity_documents": [
            {
                "type": "passport",
                "unique_identifier": document.number,
                "expires_on": document.expiry_date,
                "issuing_country_code": document.issuing_country,
            }
            for document in traveler.documents
        ],
    }
    phone = format_phone(traveler.phone_number or contact.phone, traveler.phone_country_code)
    if phone:
        passenger["phone_number"] = phone
    return passenger


def build_order_request(offer: FlightOffer, travelers: list[Traveler], contact: ContactInfo) -> dict[str, Any]:
    return {
        "data": {
            "type": "instant",
            "selected_offers": [offer.id],
            "payments": [
                {
                    "type": "balance",
                    "amount": offer.raw.get("total_amount") or str(offer.price.total),
                    "currency": offer.raw.get("total_currency") or offer.price.currency,
                }
            ],
            "passengers": [_passenger(traveler, contact) for traveler in travelers],
        }
    }


class DuffelFlightProvider(HttpFlightProvider):
    """Modern REST flight API (Duffel). Offers expire; passengers carry offer-scoped ids."""

    kind = ProviderKind.MODERN

    def __init__(
        self,
        api_key: str,
        base_url: str = DUFFEL_BASE_URL,
        timeout_seconds: float = 20.0,
    ) -> None:
        super().__init__(base_url, duffel_breaker, timeout_seconds)
        self._api_key = api_key

    async def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Duffel-Version": DUFFEL_VERSION,
            "Authorization": f"Bearer {self._api_key}",
        }

    def _error_detail(self, body: dict[str, Any]) -> tuple[str | None, str | None]:
        errors = body.get("errors") or []
        if not errors:
            return None, None
        first = errors[0]
        return first.get("message") or first.get("title"), first.get("code")

    def normalize_offer(self, raw: dict[str, Any]) -> FlightOffer:
        return duffel_normalizer.normalize_offer(raw)

    async def search(self, criteria: SearchCriteria) -> list[FlightOffer]:
        created = await self._request(
            "POST",
            "/air/offer_requests",
            "search",
            params={"return_offers": "false"},
            json=build_offer_request(criteria),
        )
        offer_request_id = created["data"]["id"]
        body = await self._request(
            "GET",
            "/air/offers",
            "search",
            params={
                "offer_request_id": offer_request_id,
                "max_connections": 0 if criteria.non_stop else 2,
                "sort": "total_amount",
                "limit": criteria.max_results,
            },
        )
        return [duffel_normalizer.normalize_offer(raw) for raw in body.get("data", [])[: criteria.max_results]]

    async def reprice(self, offer: FlightOffer) -> FlightOffer:
        # Duffel offers carry their own price; re-fetching confirms it is still live.
        body = await self._request("GET", f"/air/offers/{offer.id}", "reprice")
        return duffel_normalizer.normalize_offer(body["data"])

    async def create_order(
        self,
        offer: FlightOffer,
        travelers: list[Traveler],
        contact: ContactInfo,
        remarks: str | None = None,
    ) -> ProviderOrder:
        body = await self._request(
            "POST", "/air/orders", "createOrder", json=build_order_request(offer, travelers, contact)
        )
        return duffel_normalizer.normalize_order(body["data"])

    async def get_order(self, provider_order_id: str) -> ProviderOrder:
        body = await self._request("GET", f"/air/orders/{provider_order_id}", "getOrder")
        return duffel_normalizer.normalize_order(body["data"])

    async def cancel_order(self, provider_order_id: str) -> CancellationResult:
        # Creating an order cancellation only quotes the refund; the order stays live until confirmed.
        quote = await self._request(
            "POST",
            "/air/order_cancellations",
            "cancelOrder",
            json={"data": {"order_id": provider_order_id}},
        )
        cancellation_id = quote["data"]["id"]
        body = await self._request(
            "POST",
            f"/air/order_cancellations/{cancellation_id}/actions/confirm",
            "cancelOrder",
        )
        return duffel_normalizer.normalize_cancellation(body["data"], provider_order_id)

    async def search_locations(self, keyword: str) -> list[Place]:
        body = await self._request("GET", "/places/suggestions", "searchLocations", params={"query": keyword})
        return [duffel_normalizer.normalize_place(raw) for raw in body.get("data", [])]

    async def get_seat_maps(self, offer: FlightOffer) -> list[dict[str, Any]]:
        body = await self._request("GET", "/air/seat_maps", "getSeatMaps", params={"offer_id": offer.id})
        return body.get("data", [])

    async def get_ancillaries(self, offer_id: str) -> list[AncillaryService]:
        body = await self._request("GET", "/air/service_offers", "getAncillaries", params={"offer_id": offer_id})
        return [duffel_normalizer.normalize_service(raw) for raw in body.get("data", [])]

    async def get_order_change_options(
        self, provider_order_id: str, changes: dict[str, Any]
    ) -> list[OrderChangeOffer]:
        body = await self._request(
            "POST",
            "/air/order_change_offers",
            "getOrderChangeOptions",
            json={"data": {"order_id": provider_order_id, **changes}},
        )
        return [duffel_normalizer.normalize_change_offer(raw) for raw in body.get("data", [])]

    async def confirm_order_change(self, change_offer_id: str, payment: dict[str, Any]) -> OrderChangeResult:
        data: dict[str, Any] = {"selected_order_change_offer": change_offer_id}
        if payment:
            data["payment"] = payment
        body = await self._request("POST", "/air/order_changes", "confirmOrderChange", json={"data": data})
        return duffel_normalizer.normalize_change(body["data"])
