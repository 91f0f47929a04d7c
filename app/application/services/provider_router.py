import asyncio
import logging

from app.application.interfaces.flight_provider import FlightProviderClient, SearchCriteria
from app.domain.entities.flight_offer import FlightOffer, ProviderKind
from app.domain.errors import ValidationError

logger = logging.getLogger(__name__)

ALL_PROVIDERS = "all"


class ProviderRouter:
    """Picks the provider client per request and fans searches out across providers."""

    def __init__(self, clients: dict[ProviderKind, FlightProviderClient], default: ProviderKind) -> None:
        self._clients = clients
        self._default = default

    @property
    def default_kind(self) -> ProviderKind:
        return self._default

    def available(self) -> list[FlightProviderClient]:
        return list(self._clients.values())

    def for_kind(self, kind: ProviderKind) -> FlightProviderClient:
        client = self._clients.get(kind)
        if client is None:
            raise ValidationError(f"Flight provider {kind.provider_name} is not configured")
        return client

    def for_offer(self, offer: FlightOffer) -> FlightProviderClient:
        return self.for_kind(offer.provider)

    def get(self, name: str | None = None) -> FlightProviderClient:
        if not name:
            return self.for_kind(self._default)
        try:
            kind = ProviderKind.from_name(name)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return self.for_kind(kind)

    async def search(self, criteria: SearchCriteria, provider: str | None = None) -> list[FlightOffer]:
        if provider and provider.lower() == ALL_PROVIDERS:
            return await self.search_all(criteria)
        return await self.get(provider).search(criteria)

    async def search_all(self, criteria: SearchCriteria) -> list[FlightOffer]:
        clients = self.available()
        results = await asyncio.gather(
            *(client.search(criteria) for client in clients), return_exceptions=True
        )
        merged: list[FlightOffer] = []
        failures: list[BaseException] = []
        for client, result in zip(clients, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "Provider search failed during fan-out",
                    extra={"provider": client.name, "error": str(result)},
                )
                failures.append(result)
                continue
            merged.extend(result)
        if failures and len(failures) == len(clients):
            raise failures[0]
        return sorted(merged, key=lambda offer: offer.price.total)
