from typing import Any

from app.domain.entities.flight_order import FlightOrder


class NotificationSender:
    async def send_schedule_change_notice(
        self, order: FlightOrder, new_slices: list[dict[str, Any]]
    ) -> None:
        raise NotImplementedError

    async def send_cancellation_notice(self, order: FlightOrder) -> None:
        raise NotImplementedError

    async def send_ticket_email(self, order: FlightOrder) -> None:
        raise NotImplementedError
