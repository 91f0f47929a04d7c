import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any

from app.application.interfaces.audit_log import AuditEvent, AuditLog
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.application.interfaces.notification_sender import NotificationSender
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus, sources_for
from app.domain.value_objects.money import to_decimal

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_CANCELLED = "order.cancelled"
ORDER_SCHEDULE_CHANGED = "order.schedule_changed"
ORDER_AIRLINE_INITIATED_CHANGE = "order.airline_initiated_change"
ORDER_CHANGE_CREATED = "order_change.created"
ORDER_CHANGE_CONFIRMED = "order_change.confirmed"
ORDER_CANCELLATION_CONFIRMED = "order_cancellation.confirmed"


@dataclass
class WebhookResult:
    event_id: str
    event_type: str | None
    handled: bool
    duplicate: bool = False
    order_number: str | None = None


class ReconcileProviderWebhookUseCase:
    """
    Applies asynchronous provider events to stored orders.

    Every event is written to the audit log before it is handled, so a failing
    handler still leaves a trace. Status writes are compare-and-set so a late
    webhook cannot overwrite a newer state.
    """

    def __init__(
        self,
        flight_order_repo: FlightOrderRepo,
        booking_repo: BookingRepo,
        audit_log: AuditLog,
        notification_sender: NotificationSender,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._flight_order_repo = flight_order_repo
        self._booking_repo = booking_repo
        self._audit_log = audit_log
        self._notification_sender = notification_sender
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)
        self._handlers = {
            ORDER_CREATED: self._on_order_created,
            ORDER_UPDATED: self._on_order_updated,
            ORDER_CANCELLED: self._on_order_cancelled,
            ORDER_CANCELLATION_CONFIRMED: self._on_order_cancelled,
            ORDER_SCHEDULE_CHANGED: self._on_schedule_changed,
            ORDER_AIRLINE_INITIATED_CHANGE: self._on_schedule_changed,
            ORDER_CHANGE_CREATED: self._on_change_created,
            ORDER_CHANGE_CONFIRMED: self._on_change_confirmed,
        }

    async def execute(self, body: dict[str, Any]) -> WebhookResult:
        event_type = body.get("event") or body.get("type")
        event_id = str(body.get("id") or _fingerprint(body))
        data = body.get("data") or {}
        if isinstance(data, dict) and isinstance(data.get("object"), dict):
            data = data["object"]

        await self._audit_log.record(
            AuditEvent(
                action="webhook_received",
                entity="webhook",
                entity_id=event_id,
                details={"event": event_type, "data": data},
            )
        )

        if await self._audit_log.exists("webhook_processed", event_id):
            self._logger.info("Duplicate webhook ignored", extra={"event_id": event_id, "event": event_type})
            return WebhookResult(event_id=event_id, event_type=event_type, handled=False, duplicate=True)

        handler = self._handlers.get(event_type)
        if handler is None:
            self._logger.info("Unhandled webhook event type", extra={"event_id": event_id, "event": event_type})
            return WebhookResult(event_id=event_id, event_type=event_type, handled=False)

        order = await handler(data)
        await self._audit_log.record(
            AuditEvent(
                action="webhook_processed",
                entity="webhook",
                entity_id=event_id,
                details={"event": event_type, "orderNumber": order.order_number if order else None},
            )
        )
        return WebhookResult(
            event_id=event_id,
            event_type=event_type,
            handled=order is not None,
            order_number=order.order_number if order else None,
        )

    async def _find_order(self, provider_order_id: str | None, event: str) -> FlightOrder | None:
        if not provider_order_id:
            self._logger.warning("Webhook without order id", extra={"event": event})
            return None
        order = await self._flight_order_repo.get_by_provider_order_id(provider_order_id)
        if order is None:
            self._logger.warning(
                "Webhook for unknown order ignored",
                extra={"event": event, "provider_order_id": provider_order_id},
            )
        return order

    async def _on_order_created(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("id"), ORDER_CREATED)
        if order is not None:
            self._logger.info("Upstream order created", extra={"order_number": order.order_number})
        return order

    async def _on_order_updated(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("id"), ORDER_UPDATED)
        if order is None:
            return None
        async with self._transaction_manager.start():
            order.flight_offer_data = {**order.flight_offer_data, **data}
            order.updated_at = self._clock.now()
            await self._flight_order_repo.update(order, expected_statuses={order.status})
        return order

    async def _on_order_cancelled(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("order_id") or data.get("id"), ORDER_CANCELLED)
        if order is None:
            return None
        if not order.can_transition(FlightOrderStatus.CANCELLED):
            self._logger.info(
                "Cancellation webhook for order already closed",
                extra={"order_number": order.order_number, "status": order.status.value},
            )
            return order

        now = self._clock.now()
        async with self._transaction_manager.start():
            order.cancel(now)
            cancelled = await self._flight_order_repo.update(
                order, expected_statuses=sources_for(FlightOrderStatus.CANCELLED)
            )
            if cancelled and order.booking_id:
                booking = await self._booking_repo.get_by_id(order.booking_id)
                if booking is not None:
                    booking.cancel(now)
                    await self._booking_repo.update(booking)

        if cancelled:
            await self._notification_sender.send_cancellation_notice(order)
            self._logger.info("Order cancelled by provider", extra={"order_number": order.order_number})
        return order

    async def _on_schedule_changed(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("id") or data.get("order_id"), ORDER_SCHEDULE_CHANGED)
        if order is None:
            return None
        if order.is_terminal:
            self._logger.info(
                "Schedule change for closed order ignored",
                extra={"order_number": order.order_number, "status": order.status.value},
            )
            return order
        slices = data.get("slices") or []
        async with self._transaction_manager.start():
            order.apply_schedule_change(slices, self._clock.now())
            applied = await self._flight_order_repo.update(order, expected_statuses={order.status})
        if not applied:
            self._logger.info(
                "Order changed while applying schedule change, not notifying",
                extra={"order_number": order.order_number},
            )
            return order

        await self._notification_sender.send_schedule_change_notice(order, slices)
        self._logger.warning(
            "Schedule change applied, customer notified",
            extra={"order_number": order.order_number, "slices": len(slices)},
        )
        return order

    async def _on_change_created(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("order_id"), ORDER_CHANGE_CREATED)
        if order is not None:
            self._logger.info(
                "Order change requested upstream",
                extra={"order_number": order.order_number, "change_id": data.get("id")},
            )
        return order

    async def _on_change_confirmed(self, data: dict[str, Any]) -> FlightOrder | None:
        order = await self._find_order(data.get("order_id"), ORDER_CHANGE_CONFIRMED)
        if order is None:
            return None
        new_total = data.get("new_total_amount")
        if new_total in (None, ""):
            return order
        async with self._transaction_manager.start():
            order.total_amount = to_decimal(new_total)
            order.tax_amount = order.total_amount - order.base_amount
            order.updated_at = self._clock.now()
            await self._flight_order_repo.update(order, expected_statuses={order.status})
        return order


def _fingerprint(body: dict[str, Any]) -> str:
    normalized = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()
