import copy

from app.application.interfaces.booking_repo import BookingRepo
from app.domain.entities.booking import Booking


class InMemoryBookingRepo(BookingRepo):
    def __init__(self) -> None:
        self._by_id: dict[int, Booking] = {}
        self._next_id = 1

    async def create(self, booking: Booking) -> Booking:
        booking.id = self._next_id
        self._next_id += 1
        self._by_id[booking.id] = copy.deepcopy(booking)
        return booking

    async def get_by_id(self, booking_id: int) -> Booking | None:
        booking = self._by_id.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    async def update(self, booking: Booking) -> None:
        self._by_id[booking.id] = copy.deepcopy(booking)

    def count(self) -> int:
        return len(self._by_id)
