import logging
from decimal import Decimal
from typing import Any

from app.application.dtos.order_dto import Caller
from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.services.provider_router import ProviderRouter
from app.application.use_cases.get_flight_orders import find_owned_order
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus
from app.domain.entities.provider_order import OrderChangeOffer, OrderChangeResult
from app.domain.errors import InvalidOrderStateError, ValidationError

CHANGEABLE_STATUSES = frozenset({FlightOrderStatus.CONFIRMED, FlightOrderStatus.TICKETED})


def _ensure_changeable(order: FlightOrder, operation: str) -> str:
    if order.status not in CHANGEABLE_STATUSES or not order.provider_order_id:
        raise InvalidOrderStateError(order.status.value, operation)
    return order.provider_order_id


class GetOrderChangeOptionsUseCase:
    def __init__(self, flight_order_repo: FlightOrderRepo, provider_router: ProviderRouter) -> None:
        self._flight_order_repo = flight_order_repo
        self._provider_router = provider_router

    async def execute(
        self, identifier: str, caller: Caller, slices: list[dict[str, Any]]
    ) -> list[OrderChangeOffer]:
        if not slices:
            raise ValidationError("slices are required to request change options")
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        provider_order_id = _ensure_changeable(order, "request order change")
        provider = self._provider_router.for_kind(order.provider)
        return await provider.get_order_change_options(provider_order_id, {"slices": slices})


class ConfirmOrderChangeUseCase:
    """Confirms an upstream change offer and applies the new total to the order."""

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        audit_log: AuditLog,
        provider_router: ProviderRouter,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._audit_log = audit_log
        self._provider_router = provider_router
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        identifier: str,
        caller: Caller,
        change_offer_id: str,
        amount: Decimal | None = None,
        currency: str | None = None,
    ) -> OrderChangeResult:
        if not change_offer_id:
            raise ValidationError("changeOfferId is required")
        order = await find_owned_order(self._flight_order_repo, identifier, caller)
        _ensure_changeable(order, "confirm order change")
        provider = self._provider_router.for_kind(order.provider)

        payment: dict[str, Any] = {}
        if amount is not None and amount > 0:
            payment = {"type": "balance", "amount": str(amount), "currency": currency or order.currency_code}
        result = await provider.confirm_order_change(change_offer_id, payment)

        async with self._transaction_manager.start():
            if result.new_total_amount is not None:
                order.total_amount = result.new_total_amount
                order.tax_amount = result.new_total_amount - order.base_amount
            order.updated_at = self._clock.now()
            stored = await self._flight_order_repo.update(order, expected_statuses=CHANGEABLE_STATUSES)
            if not stored:
                raise InvalidOrderStateError("changed concurrently", "confirm order change")
            await self._audit_log.record(
                AuditEvent(
                    action="flight_order_changed",
                    entity="flight_order",
                    entity_id=order.order_number,
                    user_id=caller.user_id,
                    details={
                        "changeId": result.change_id,
                        "newTotal": str(result.new_total_amount) if result.new_total_amount is not None else None,
                        "currency": result.currency,
                    },
                )
            )

        self._logger.info(
            "Flight order change confirmed",
            extra={"order_number": order.order_number, "change_id": result.change_id},
        )
        return result
