import copy
from collections.abc import Iterable, Sequence

from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus
from app.domain.errors import DuplicateRequestError


class InMemoryFlightOrderRepo(FlightOrderRepo):
    """Stores copies so callers only see committed state, like the SQL repo."""

    def __init__(self) -> None:
        self._by_id: dict[int, FlightOrder] = {}
        self._active_keys: dict[str, int] = {}
        self._next_id = 1

    async def create(self, order: FlightOrder) -> FlightOrder:
        key = order.active_offer_key
        if key is not None and key in self._active_keys:
            raise DuplicateRequestError(order.user_id, order.upstream_offer_id)
        if any(o.order_number == order.order_number for o in self._by_id.values()):
            raise DuplicateRequestError(order.user_id, order.upstream_offer_id)
        order.id = self._next_id
        self._next_id += 1
        self._by_id[order.id] = copy.deepcopy(order)
        if key is not None:
            self._active_keys[key] = order.id
        return order

    async def get_by_id(self, order_id: int) -> FlightOrder | None:
        return self._copy(self._by_id.get(order_id))

    async def get_by_order_number(self, order_number: str) -> FlightOrder | None:
        return self._first(lambda o: o.order_number == order_number)

    async def get_by_provider_order_id(self, provider_order_id: str) -> FlightOrder | None:
        return self._first(lambda o: o.provider_order_id == provider_order_id)

    async def get_by_booking_id(self, booking_id: int) -> FlightOrder | None:
        return self._first(lambda o: o.booking_id == booking_id)

    async def find_active_by_offer(self, user_id: str, upstream_offer_id: str) -> FlightOrder | None:
        order_id = self._active_keys.get(f"{user_id}:{upstream_offer_id}")
        return self._copy(self._by_id.get(order_id)) if order_id else None

    async def update(
        self,
        order: FlightOrder,
        expected_statuses: Iterable[FlightOrderStatus] | None = None,
    ) -> bool:
        stored = self._by_id.get(order.id)
        if stored is None:
            return False
        if expected_statuses is not None and stored.status not in set(expected_statuses):
            return False
        old_key, new_key = stored.active_offer_key, order.active_offer_key
        if new_key is not None and new_key != old_key and new_key in self._active_keys:
            raise DuplicateRequestError(order.user_id, order.upstream_offer_id)
        if old_key is not None:
            self._active_keys.pop(old_key, None)
        if new_key is not None:
            self._active_keys[new_key] = order.id
        self._by_id[order.id] = copy.deepcopy(order)
        return True

    async def delete(self, order_id: int) -> None:
        stored = self._by_id.pop(order_id, None)
        if stored is not None and stored.active_offer_key is not None:
            self._active_keys.pop(stored.active_offer_key, None)

    async def list_by_user(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        return self._page([o for o in self._by_id.values() if o.user_id == user_id], offset, limit)

    async def list_all(
        self, status: FlightOrderStatus | None, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        matches = [o for o in self._by_id.values() if status is None or o.status == status]
        return self._page(matches, offset, limit)

    def _page(self, orders: list[FlightOrder], offset: int, limit: int) -> tuple[list[FlightOrder], int]:
        newest_first = sorted(orders, key=lambda o: o.id, reverse=True)
        return [copy.deepcopy(o) for o in newest_first[offset : offset + limit]], len(orders)

    def _first(self, predicate) -> FlightOrder | None:
        for order in self._by_id.values():
            if predicate(order):
                return copy.deepcopy(order)
        return None

    @staticmethod
    def _copy(order: FlightOrder | None) -> FlightOrder | None:
        return copy.deepcopy(order) if order is not None else None

    def count(self) -> int:
        return len(self._by_id)
