import logging
import time
from typing import Any

from app.application.interfaces.flight_provider import SearchCriteria
from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.entities.provider_order import CancellationResult, Place, ProviderOrder
from app.domain.entities.traveler import ContactInfo, Gender, Traveler
from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.circuit_breaker import amadeus_breaker
from app.infrastructure.gateways import amadeus_normalizer
from app.infrastructure.gateways.provider_http import HttpFlightProvider, response_json

logger = logging.getLogger(__name__)

AMADEUS_BASE_URL = "https://test.api.amadeus.com"
TOKEN_PATH = "/v1/security/oauth2/token"
# Refresh a little before the token actually expires.
TOKEN_EXPIRY_MARGIN_SECONDS = 30


def build_search_params(criteria: SearchCriteria) -> dict[str, Any]:
    params: dict[str, Any] = {
        "originLocationCode": criteria.origin,
        "destinationLocationCode": criteria.destination,
        "departureDate": criteria.departure_date,
        "adults": criteria.adults,
        "currencyCode": criteria.currency_code,
        "max": criteria.max_results,
    }
    if criteria.return_date:
        params["returnDate"] = criteria.return_date
    if criteria.children:
        params["children"] = criteria.children
    if criteria.infants:
        params["infants"] = criteria.infants
    if criteria.travel_class:
        params["travelClass"] = criteria.travel_class
    if criteria.non_stop:
        params["nonStop"] = "true"
    return params


def _traveler(index: int, traveler: Traveler, contact: ContactInfo) -> dict[str, Any]:
    gender = (traveler.gender or "").upper()
    payload: dict[str, Any] = {
        "id": str(index),
        "dateOfBirth": traveler.date_of_birth,
        "name": {"firstName": traveler.first_name.upper(), "lastName": traveler.last_name.upper()},
        "gender": gender if gender in (Gender.MALE.value, Gender.FEMALE.value) else Gender.MALE.value,
        "contact": {
            "emailAddress": traveler.email or contact.email,
            "phones": [
                {
                    "deviceType": "MOBILE",
                    "countryCallingCode": (traveler.phone_country_code or "1").lstrip("+"),
                    "number": traveler.phone_number or contact.phone or "",
                }
            ],
        },
    }
    if traveler.documents:
        payload["documents"] = [
            {
                "documentType": document.document_type.upper(),
                "number": document.number,
                "expiryDate": document.expiry_date,
                "issuanceCountry": document.issuing_country,
                "nationality": document.nationality or traveler.resolved_nationality,
                "holder": document.holder,
            }
            for document in traveler.documents
        ]
    return payload


def build_order_request(
    offer: FlightOffer, travelers: list[Traveler], contact: ContactInfo, remarks: str | None = None
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "type": "flight-order",
        "flightOffers": [offer.raw],
        "travelers": [_traveler(index, traveler, contact) for index, traveler in enumerate(travelers, start=1)],
    }
    if remarks:
        data["remarks"] = {"general": [{"subType": "GENERAL_MISCELLANEOUS", "text": remarks[:127]}]}
    return {"data": data}


class AmadeusFlightProvider(HttpFlightProvider):
    """
    GDS-style flight API (Amadeus Self-Service).

    Authenticates with OAuth2 client credentials; the access token is cached
    until shortly before `expires_in` runs out. Offers must be re-priced before
    booking and the order request carries the full raw offer.
    """

    kind = ProviderKind.GDS

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = AMADEUS_BASE_URL,
        timeout_seconds: float = 20.0,
    ) -> None:
        super().__init__(base_url, amadeus_breaker, timeout_seconds)
        self._client_id = client_id
        self._client_secret = client_secret
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = await self._call(
            "POST",
            TOKEN_PATH,
            "authenticate",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        body = response_json(response)
        if response.status_code >= 400 or "access_token" not in body:
            logger.error("Amadeus authentication failed", extra={"status": response.status_code})
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE,
                body.get("error_description") or "Amadeus authentication failed",
                provider=self.name,
                http_status=response.status_code,
            )

        expires_in = int(body.get("expires_in") or 0)
        self._token = body["access_token"]
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.info("Amadeus access token refreshed", extra={"expires_in": expires_in})
        return self._token

    async def _headers(self) -> dict[str, str]:
        token = await self._access_token()
        return {"Accept": "application/json", "Authorization": f"Bearer {token}"}

    def _error_detail(self, body: dict[str, Any]) -> tuple[str | None, str | None]:
        errors = body.get("errors") or []
        if not errors:
            return None, None
        first = errors[0]
        code = first.get("code")
        return first.get("detail") or first.get("title"), str(code) if code is not None else None

    def normalize_offer(self, raw: dict[str, Any]) -> FlightOffer:
        return amadeus_normalizer.normalize_offer(raw)

    async def search(self, criteria: SearchCriteria) -> list[FlightOffer]:
        body = await self._request("GET", "/v2/shopping/flight-offers", "search", params=build_search_params(criteria))
        return [amadeus_normalizer.normalize_offer(raw) for raw in body.get("data", [])[: criteria.max_results]]

    async def reprice(self, offer: FlightOffer) -> FlightOffer:
        body = await self._request(
            "POST",
            "/v1/shopping/flight-offers/pricing",
            "reprice",
            json={"data": {"type": "flight-offers-pricing", "flightOffers": [offer.raw]}},
        )
        offers = (body.get("data") or {}).get("flightOffers") or []
        if not offers:
            raise ProviderError(
                ProviderErrorKind.OFFER_EXPIRED, "Offer could not be re-priced", provider=self.name
            )
        return amadeus_normalizer.normalize_offer(offers[0])

    async def create_order(
        self,
        offer: FlightOffer,
        travelers: list[Traveler],
        contact: ContactInfo,
        remarks: str | None = None,
    ) -> ProviderOrder:
        body = await self._request(
            "POST",
            "/v1/booking/flight-orders",
            "createOrder",
            json=build_order_request(offer, travelers, contact, remarks),
        )
        return amadeus_normalizer.normalize_order(body["data"])

    async def get_order(self, provider_order_id: str) -> ProviderOrder:
        body = await self._request("GET", f"/v1/booking/flight-orders/{provider_order_id}", "getOrder")
        return amadeus_normalizer.normalize_order(body["data"])

    async def cancel_order(self, provider_order_id: str) -> CancellationResult:
        body = await self._request("DELETE", f"/v1/booking/flight-orders/{provider_order_id}", "cancelOrder")
        return amadeus_normalizer.normalize_cancellation(provider_order_id, body or None)

    async def search_locations(self, keyword: str) -> list[Place]:
        body = await self._request(
            "GET",
            "/v1/reference-data/locations",
            "searchLocations",
            params={"keyword": keyword, "subType": "AIRPORT,CITY"},
        )
        return [amadeus_normalizer.normalize_location(raw) for raw in body.get("data", [])]

    async def get_seat_maps(self, offer: FlightOffer) -> list[dict[str, Any]]:
        body = await self._request("POST", "/v1/shopping/seatmaps", "getSeatMaps", json={"data": [offer.raw]})
        return body.get("data", [])
