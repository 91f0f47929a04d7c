import logging
import re
from dataclasses import replace
from datetime import date

from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_provider import SearchCriteria
from app.application.services.provider_router import ProviderRouter
from app.domain.entities.flight_offer import FlightOffer
from app.domain.errors import ValidationError

_IATA = re.compile(r"^[A-Z]{3}$")
MAX_PASSENGERS = 9
TRAVEL_CLASSES = ("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST")


class SearchFlightsUseCase:
    def __init__(self, provider_router: ProviderRouter, clock: Clock, max_results: int = 50) -> None:
        self._provider_router = provider_router
        self._clock = clock
        self._max_results = max_results
        self._logger = logging.getLogger(__name__)

    async def execute(self, criteria: SearchCriteria, provider: str | None = None) -> list[FlightOffer]:
        criteria = self._normalize(criteria)
        offers = await self._provider_router.search(criteria, provider)

        now = self._clock.now()
        fresh = [offer for offer in offers if not offer.is_expired(now)]
        if len(fresh) != len(offers):
            self._logger.info(
                "Dropped expired offers from search results",
                extra={"dropped": len(offers) - len(fresh)},
            )
        self._logger.info(
            "Flight search completed",
            extra={
                "origin": criteria.origin,
                "destination": criteria.destination,
                "departure_date": criteria.departure_date,
                "provider": provider or self._provider_router.default_kind.provider_name,
                "results": len(fresh),
            },
        )
        return fresh

    def _normalize(self, criteria: SearchCriteria) -> SearchCriteria:
        origin = (criteria.origin or "").strip().upper()
        destination = (criteria.destination or "").strip().upper()
        travel_class = (criteria.travel_class or "ECONOMY").strip().upper()
        errors: list[str] = []

        if not origin or not destination or not criteria.departure_date:
            raise ValidationError("Origin, destination, and departure date are required")
        if not _IATA.match(origin):
            errors.append("origin must be a 3-letter IATA code")
        if not _IATA.match(destination):
            errors.append("destination must be a 3-letter IATA code")
        if origin == destination:
            errors.append("origin and destination must differ")

        departure = _parse_date(criteria.departure_date)
        if departure is None:
            errors.append("departureDate must be YYYY-MM-DD")
        if criteria.return_date:
            returning = _parse_date(criteria.return_date)
            if returning is None:
                errors.append("returnDate must be YYYY-MM-DD")
            elif departure is not None and returning < departure:
                errors.append("returnDate cannot be before departureDate")

        if criteria.adults < 1:
            errors.append("at least one adult is required")
        if criteria.infants > criteria.adults:
            errors.append("each infant must travel with an adult")
        if criteria.adults + criteria.children + criteria.infants > MAX_PASSENGERS:
            errors.append(f"at most {MAX_PASSENGERS} passengers per search")
        if travel_class not in TRAVEL_CLASSES:
            errors.append(f"travelClass must be one of {', '.join(TRAVEL_CLASSES)}")

        if errors:
            raise ValidationError("Invalid search criteria", errors=errors)

        return replace(
            criteria,
            origin=origin,
            destination=destination,
            travel_class=travel_class,
            currency_code=(criteria.currency_code or "USD").upper(),
            max_results=min(criteria.max_results or self._max_results, self._max_results),
        )


def _parse_date(value: str | None) -> date | None:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None
