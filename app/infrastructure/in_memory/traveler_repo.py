import copy
from collections.abc import Sequence

from app.application.interfaces.traveler_repo import FlightSegmentRepo, TravelerRepo
from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.traveler import Traveler


class InMemoryTravelerRepo(TravelerRepo):
    def __init__(self) -> None:
        self._travelers: list[Traveler] = []
        self._next_id = 1
        self._next_document_id = 1

    async def add_many(self, travelers: Sequence[Traveler]) -> list[Traveler]:
        for traveler in travelers:
            traveler.id = self._next_id
            self._next_id += 1
            for document in traveler.documents:
                document.id = self._next_document_id
                document.traveler_id = traveler.id
                self._next_document_id += 1
            self._travelers.append(copy.deepcopy(traveler))
        return list(travelers)

    async def list_by_order(self, flight_order_id: int) -> list[Traveler]:
        return [copy.deepcopy(t) for t in self._travelers if t.flight_order_id == flight_order_id]


class InMemoryFlightSegmentRepo(FlightSegmentRepo):
    def __init__(self) -> None:
        self._segments: list[FlightSegment] = []
        self._next_id = 1

    async def add_many(self, segments: Sequence[FlightSegment]) -> list[FlightSegment]:
        for segment in segments:
            segment.id = self._next_id
            self._next_id += 1
            self._segments.append(copy.deepcopy(segment))
        return list(segments)

    async def list_by_order(self, flight_order_id: int) -> list[FlightSegment]:
        matches = [copy.deepcopy(s) for s in self._segments if s.flight_order_id == flight_order_id]
        return sorted(matches, key=lambda s: s.segment_number)
