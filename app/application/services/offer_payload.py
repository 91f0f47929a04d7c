from decimal import InvalidOperation
from typing import Any

from app.application.interfaces.flight_provider import FlightProviderClient
from app.domain.entities.flight_offer import FlightOffer
from app.domain.errors import ValidationError
from app.domain.value_objects.money import Money

REQUIRED_OFFER_FIELDS = ("id", "provider", "price", "itineraries")


def parse_offer(payload: dict[str, Any] | None) -> FlightOffer:
    """Rebuilds a normalized offer re-submitted by the client.

    The offer must come back exactly as search/confirm-price returned it, including
    the provider tag and the raw payload.
    """
    if not payload:
        raise ValidationError("flightOffer is required")

    missing = [name for name in REQUIRED_OFFER_FIELDS if not payload.get(name)]
    price = payload.get("price") or {}
    if price and not price.get("total"):
        missing.append("price.total")
    if not payload.get("raw"):
        missing.append("raw")
    if missing:
        raise ValidationError(
            "flightOffer is missing required fields",
            errors=[f"{name} is required" for name in missing],
        )

    try:
        return FlightOffer.from_snapshot(payload)
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ValidationError(f"flightOffer is malformed: {exc}") from exc


def verify_offer(offer: FlightOffer, provider: FlightProviderClient) -> FlightOffer:
    """Checks a re-submitted offer against the provider payload it carries.

    Upstream calls are built from `raw`, so price and expiry are taken from it
    rather than from the client's normalized copy. A submitted price that
    disagrees with the provider's by more than one minor unit is rejected.
    """
    if not offer.price.is_consistent():
        raise ValidationError(
            "flightOffer.price is inconsistent",
            errors=[f"price.base {offer.price.base} + price.tax {offer.price.tax} != price.total {offer.price.total}"],
        )

    try:
        quoted = provider.normalize_offer(offer.raw)
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ValidationError(f"flightOffer.raw is malformed: {exc}") from exc

    if quoted.id != offer.id:
        raise ValidationError(f"flightOffer.raw belongs to offer {quoted.id}, not {offer.id}")
    try:
        provider_total = Money(quoted.price.total, quoted.price.currency)
        matches = provider_total.approx_equals(Money(offer.price.total, offer.price.currency))
    except ValueError:
        # Currency mismatch or an amount Money refuses (negative, bad code).
        matches = False
    if not matches:
        raise ValidationError(
            "flightOffer.price does not match the provider offer",
            errors=[
                f"submitted {offer.price.total} {offer.price.currency}, "
                f"provider quoted {quoted.price.total} {quoted.price.currency}"
            ],
        )

    offer.price = quoted.price
    offer.expires_at = quoted.expires_at
    return offer
