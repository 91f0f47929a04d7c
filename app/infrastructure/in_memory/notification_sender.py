import logging
from dataclasses import dataclass
from typing import Any

from app.application.interfaces.notification_sender import NotificationSender
from app.domain.entities.flight_order import FlightOrder

logger = logging.getLogger(__name__)


class LoggingNotificationSender(NotificationSender):
    """Email delivery is external; this sender only logs what would be sent."""

    async def send_schedule_change_notice(
        self, order: FlightOrder, new_slices: list[dict[str, Any]]
    ) -> None:
        logger.warning(
            "Schedule change notice sent",
            extra={"order_number": order.order_number, "email": order.contact_email, "slices": len(new_slices)},
        )

    async def send_cancellation_notice(self, order: FlightOrder) -> None:
        logger.info(
            "Cancellation notice sent",
            extra={"order_number": order.order_number, "email": order.contact_email},
        )

    async def send_ticket_email(self, order: FlightOrder) -> None:
        logger.info(
            "Ticket email sent",
            extra={"order_number": order.order_number, "email": order.contact_email, "pnr": order.pnr},
        )


@dataclass
class SentNotification:
    kind: str
    order_number: str
    payload: Any = None


class RecordingNotificationSender(NotificationSender):
    def __init__(self) -> None:
        self.sent: list[SentNotification] = []

    async def send_schedule_change_notice(
        self, order: FlightOrder, new_slices: list[dict[str, Any]]
    ) -> None:
        self.sent.append(SentNotification("schedule_change", order.order_number, new_slices))

    async def send_cancellation_notice(self, order: FlightOrder) -> None:
        self.sent.append(SentNotification("cancellation", order.order_number))

    async def send_ticket_email(self, order: FlightOrder) -> None:
        self.sent.append(SentNotification("ticket", order.order_number))

    def of_kind(self, kind: str) -> list[SentNotification]:
        return [n for n in self.sent if n.kind == kind]
