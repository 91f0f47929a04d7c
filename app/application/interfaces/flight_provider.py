from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

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


@dataclass
class SearchCriteria:
    origin: str
    destination: str
    departure_date: str
    return_date: str | None = None
    adults: int = 1
    children: int = 0
    infants: int = 0
    travel_class: str = "ECONOMY"
    non_stop: bool = False
    currency_code: str = "USD"
    max_results: int = 50


class FlightProviderClient(ABC):
    """
    Wraps one upstream flight supplier. Only request/response shaping lives here:
    no retries, no persistence. Upstream failures surface as ProviderError.
    """

    kind: ProviderKind

    @property
    def name(self) -> str:
        return self.kind.provider_name

    @abstractmethod
    async def search(self, criteria: SearchCriteria) -> list[FlightOffer]:
        pass

    @abstractmethod
    def normalize_offer(self, raw: dict[str, Any]) -> FlightOffer:
        """Rebuilds the normalized offer from the provider-native payload."""

    @abstractmethod
    async def reprice(self, offer: FlightOffer) -> FlightOffer:
        pass

    @abstractmethod
    async def create_order(
        self,
        offer: FlightOffer,
        travelers: list[Traveler],
        contact: ContactInfo,
        remarks: str | None = None,
    ) -> ProviderOrder:
        pass

    @abstractmethod
    async def get_order(self, provider_order_id: str) -> ProviderOrder:
        pass

    @abstractmethod
    async def cancel_order(self, provider_order_id: str) -> CancellationResult:
        pass

    @abstractmethod
    async def search_locations(self, keyword: str) -> list[Place]:
        pass

    @abstractmethod
    async def get_seat_maps(self, offer: FlightOffer) -> list[dict[str, Any]]:
        pass

    async def get_ancillaries(self, offer_id: str) -> list[AncillaryService]:
        raise self._unsupported("ancillary services")

    async def get_order_change_options(
        self, provider_order_id: str, changes: dict[str, Any]
    ) -> list[OrderChangeOffer]:
        raise self._unsupported("order changes")

    async def confirm_order_change(
        self, change_offer_id: str, payment: dict[str, Any]
    ) -> OrderChangeResult:
        raise self._unsupported("order changes")

    def _unsupported(self, feature: str) -> ProviderError:
        return ProviderError(
            ProviderErrorKind.INVALID_REQUEST,
            f"{self.name} does not support {feature}",
            provider=self.name,
        )
