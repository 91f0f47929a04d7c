from collections.abc import Sequence

from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.traveler import Traveler


class TravelerRepo:
    async def add_many(self, travelers: Sequence[Traveler]) -> list[Traveler]:
        """Stores travelers and their documents."""
        raise NotImplementedError

    async def list_by_order(self, flight_order_id: int) -> list[Traveler]:
        raise NotImplementedError


class FlightSegmentRepo:
    async def add_many(self, segments: Sequence[FlightSegment]) -> list[FlightSegment]:
        raise NotImplementedError

    async def list_by_order(self, flight_order_id: int) -> list[FlightSegment]:
        raise NotImplementedError
