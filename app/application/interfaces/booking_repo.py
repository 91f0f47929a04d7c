from app.domain.entities.booking import Booking


class BookingRepo:
    async def create(self, booking: Booking) -> Booking:
        raise NotImplementedError

    async def get_by_id(self, booking_id: int) -> Booking | None:
        raise NotImplementedError

    async def update(self, booking: Booking) -> None:
        raise NotImplementedError
