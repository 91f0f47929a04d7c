from collections.abc import Iterable, Sequence

from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus


class FlightOrderRepo:
    async def create(self, order: FlightOrder) -> FlightOrder:
        """Persists a new order.

        Raises DuplicateRequestError when another active order already holds
        the same (user, upstream offer) pair.
        """
        raise NotImplementedError

    async def get_by_id(self, order_id: int) -> FlightOrder | None:
        raise NotImplementedError

    async def get_by_order_number(self, order_number: str) -> FlightOrder | None:
        raise NotImplementedError

    async def get_by_provider_order_id(self, provider_order_id: str) -> FlightOrder | None:
        raise NotImplementedError

    async def get_by_booking_id(self, booking_id: int) -> FlightOrder | None:
        raise NotImplementedError

    async def find_active_by_offer(self, user_id: str, upstream_offer_id: str) -> FlightOrder | None:
        raise NotImplementedError

    async def update(
        self,
        order: FlightOrder,
        expected_statuses: Iterable[FlightOrderStatus] | None = None,
    ) -> bool:
        """Writes the order. With `expected_statuses` the write is a compare-and-set on
        the stored status and returns False when another writer got there first."""
        raise NotImplementedError

    async def delete(self, order_id: int) -> None:
        raise NotImplementedError

    async def list_by_user(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        raise NotImplementedError

    async def list_all(
        self, status: FlightOrderStatus | None, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        raise NotImplementedError
