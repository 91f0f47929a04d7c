import logging

from app.application.dtos.order_dto import Caller, FlightOrderDetails, OrderPage
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.traveler_repo import FlightSegmentRepo, TravelerRepo
from app.application.services.provider_router import ProviderRouter
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus
from app.domain.errors import ForbiddenError, NotFoundError, ProviderError, ValidationError

MAX_PAGE_SIZE = 100

# Orders whose upstream copy can still move (tickets issued, airline cancellation).
REFRESHABLE_STATUSES = frozenset(
    {FlightOrderStatus.PENDING, FlightOrderStatus.CONFIRMED, FlightOrderStatus.TICKETED}
)


async def find_order(repo: FlightOrderRepo, identifier: str) -> FlightOrder:
    """Looks an order up by order number, upstream order id or internal id."""
    order = await repo.get_by_order_number(identifier)
    if order is None:
        order = await repo.get_by_provider_order_id(identifier)
    if order is None and identifier.isdigit():
        order = await repo.get_by_id(int(identifier))
    if order is None:
        raise NotFoundError("Flight order", identifier)
    return order


async def find_owned_order(repo: FlightOrderRepo, identifier: str, caller: Caller) -> FlightOrder:
    order = await find_order(repo, identifier)
    if not caller.can_access(order.user_id):
        raise ForbiddenError("Not authorized to access this flight order")
    return order


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    limit = min(limit, MAX_PAGE_SIZE)
    return (page - 1) * limit, limit


class GetFlightOrderUseCase:
    """
    Returns an order with its rows, refreshed from the provider first.

    Orders that carry an upstream id are re-read with `get_order`: a pending
    claim is confirmed, late tickets and documents are merged in, and an
    airline-side cancellation is mirrored locally. Every write is a
    compare-and-set on the status that was read, so a concurrent cancel or
    webhook wins. Provider failures fall back to the stored copy.
    """

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        booking_repo: BookingRepo,
        traveler_repo: TravelerRepo,
        segment_repo: FlightSegmentRepo,
        provider_router: ProviderRouter,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._booking_repo = booking_repo
        self._traveler_repo = traveler_repo
        self._segment_repo = segment_repo
        self._provider_router = provider_router
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, identifier: str, caller: Caller) -> FlightOrderDetails:
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        order = await self._refresh(order)
        booking = await self._booking_repo.get_by_id(order.booking_id) if order.booking_id else None
        return FlightOrderDetails(
            order=order,
            booking=booking,
            travelers=await self._traveler_repo.list_by_order(order.id),
            segments=await self._segment_repo.list_by_order(order.id),
        )

    async def _refresh(self, order: FlightOrder) -> FlightOrder:
        if not order.provider_order_id or order.status not in REFRESHABLE_STATUSES:
            return order
        provider = self._provider_router.for_kind(order.provider)
        try:
            upstream = await provider.get_order(order.provider_order_id)
        except ProviderError as exc:
            self._logger.warning(
                "Could not refresh order from provider, returning stored copy",
                extra={"order_number": order.order_number, "error": str(exc)},
            )
            return order

        read_status = order.status
        now = self._clock.now()
        if read_status == FlightOrderStatus.PENDING:
            order.confirm(upstream, now)
        else:
            order.sync_upstream(upstream, now)
        if upstream.cancelled:
            order.cancel(now)

        async with self._transaction_manager.start():
            written = await self._flight_order_repo.update(order, expected_statuses={read_status})
            if written and upstream.cancelled and order.booking_id:
                booking = await self._booking_repo.get_by_id(order.booking_id)
                if booking is not None:
                    booking.cancel(now)
                    await self._booking_repo.update(booking)
        if not written:
            return await self._flight_order_repo.get_by_id(order.id) or order
        if order.status != read_status:
            self._logger.info(
                "Order status refreshed from provider",
                extra={
                    "order_number": order.order_number,
                    "from_status": read_status.value,
                    "status": order.status.value,
                },
            )
        return order


class ListMyFlightOrdersUseCase:
    def __init__(self, flight_order_repo: FlightOrderRepo) -> None:
        self._flight_order_repo = flight_order_repo

    async def execute(self, caller: Caller, page: int = 1, limit: int = 10) -> OrderPage:
        offset, limit = _page_bounds(page, limit)
        items, total = await self._flight_order_repo.list_by_user(caller.user_id, offset, limit)
        return OrderPage(items=list(items), total=total, page=page, limit=limit)


class ListAllFlightOrdersUseCase:
    def __init__(self, flight_order_repo: FlightOrderRepo) -> None:
        self._flight_order_repo = flight_order_repo

    async def execute(
        self, caller: Caller, status: str | None = None, page: int = 1, limit: int = 20
    ) -> OrderPage:
        if not caller.is_admin:
            raise ForbiddenError("Admin role required")
        try:
            status_filter = FlightOrderStatus(status) if status else None
        except ValueError as exc:
            raise ValidationError(f"Unknown order status: {status}") from exc
        offset, limit = _page_bounds(page, limit)
        items, total = await self._flight_order_repo.list_all(status_filter, offset, limit)
        return OrderPage(items=list(items), total=total, page=page, limit=limit)
