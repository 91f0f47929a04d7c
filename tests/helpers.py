"""Request payload builders shared by the API and use case tests."""

from typing import Any

from app.api.routers.flights import booking_request as build_booking_request
from app.api.schemas.flights import CreateOrderRequest
from app.application.dtos.order_dto import Caller

USER_HEADERS = {"X-User-Id": "user-1"}
OTHER_USER_HEADERS = {"X-User-Id": "user-2"}
ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

CONTACT = {"email": "ana@example.com", "phone": "+15551234567", "name": "Ana Lopez"}


def traveler_payload(offer_passenger_id: str | None = "pas_0001", **overrides: Any) -> dict[str, Any]:
    payload = {
        "firstName": "Ana",
        "lastName": "Lopez",
        "dateOfBirth": "1990-05-17",
        "gender": "FEMALE",
        "email": "ana@example.com",
        "phoneNumber": "5551234567",
        "phoneCountryCode": "1",
        "offerPassengerId": offer_passenger_id,
        "documents": [
            {
                "documentType": "passport",
                "number": "X1234567",
                "expiryDate": "2030-01-01",
                "issuingCountry": "US",
                "nationality": "US",
            }
        ],
    }
    payload.update(overrides)
    return payload


def order_payload(offer: dict[str, Any], travelers: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "flightOffer": offer,
        "travelers": travelers if travelers is not None else [traveler_payload()],
        "contacts": dict(CONTACT),
    }


def booking_request(offer: dict[str, Any], user_id: str = "user-1", travelers: list[dict[str, Any]] | None = None):
    payload = CreateOrderRequest.model_validate(order_payload(offer, travelers))
    return build_booking_request(Caller(user_id=user_id), payload)
