from dataclasses import dataclass
from typing import Any

from app.application.services.offer_payload import parse_offer
from app.application.services.provider_router import ProviderRouter
from app.domain.entities.provider_order import AncillaryService, Place
from app.domain.errors import ValidationError

MIN_KEYWORD_LENGTH = 2


@dataclass
class ProviderInfo:
    name: str
    kind: str
    default: bool


class ListProvidersUseCase:
    def __init__(self, provider_router: ProviderRouter) -> None:
        self._provider_router = provider_router

    def execute(self) -> list[ProviderInfo]:
        default = self._provider_router.default_kind
        return [
            ProviderInfo(name=client.name, kind=client.kind.value, default=client.kind == default)
            for client in self._provider_router.available()
        ]


class SearchLocationsUseCase:
    def __init__(self, provider_router: ProviderRouter) -> None:
        self._provider_router = provider_router

    async def execute(self, keyword: str, provider: str | None = None) -> list[Place]:
        keyword = (keyword or "").strip()
        if len(keyword) < MIN_KEYWORD_LENGTH:
            raise ValidationError(f"keyword must be at least {MIN_KEYWORD_LENGTH} characters")
        return await self._provider_router.get(provider).search_locations(keyword)


class GetSeatMapsUseCase:
    def __init__(self, provider_router: ProviderRouter) -> None:
        self._provider_router = provider_router

    async def execute(self, offer_payload: dict[str, Any]) -> list[dict[str, Any]]:
        offer = parse_offer(offer_payload)
        return await self._provider_router.for_offer(offer).get_seat_maps(offer)


class GetAncillariesUseCase:
    def __init__(self, provider_router: ProviderRouter) -> None:
        self._provider_router = provider_router

    async def execute(self, offer_id: str, provider: str | None = None) -> list[AncillaryService]:
        return await self._provider_router.get(provider).get_ancillaries(offer_id)
