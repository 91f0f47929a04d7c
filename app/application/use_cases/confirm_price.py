import logging
from dataclasses import dataclass
from typing import Any

from app.application.interfaces.clock import Clock
from app.application.services.offer_payload import parse_offer, verify_offer
from app.application.services.provider_router import ProviderRouter
from app.domain.entities.flight_offer import FlightOffer
from app.domain.errors import OfferExpiredError


@dataclass
class PriceConfirmation:
    offer: FlightOffer
    price_changed: bool


class ConfirmPriceUseCase:
    """Re-prices an offer with its own provider before the client commits to it."""

    def __init__(self, provider_router: ProviderRouter, clock: Clock) -> None:
        self._provider_router = provider_router
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, offer_payload: dict[str, Any]) -> PriceConfirmation:
        offer = parse_offer(offer_payload)
        provider = self._provider_router.for_offer(offer)
        offer = verify_offer(offer, provider)
        if offer.is_expired(self._clock.now()):
            raise OfferExpiredError(offer.id, offer.expires_at)

        repriced = await provider.reprice(offer)
        changed = repriced.price.total != offer.price.total
        if changed:
            self._logger.info(
                "Offer price changed on confirmation",
                extra={
                    "offer_id": offer.id,
                    "old_total": str(offer.price.total),
                    "new_total": str(repriced.price.total),
                    "currency": repriced.price.currency,
                },
            )
        return PriceConfirmation(offer=repriced, price_changed=changed)
