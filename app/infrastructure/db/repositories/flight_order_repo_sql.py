from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.flight_order_repo import FlightOrderRepo
from app.domain.entities.flight_offer import ProviderKind
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus, TicketingStatus
from app.domain.errors import DuplicateRequestError
from app.infrastructure.db.engine import as_utc
from app.infrastructure.db.tables import flight_orders


def _values(order: FlightOrder) -> dict[str, Any]:
    return {
        "order_number": order.order_number,
        "user_id": order.user_id,
        "booking_id": order.booking_id,
        "provider": order.provider.value,
        "provider_order_id": order.provider_order_id,
        "upstream_offer_id": order.upstream_offer_id,
        "active_offer_key": order.active_offer_key,
        "pnr": order.pnr,
        "status": order.status.value,
        "ticketing_status": order.ticketing_status.value,
        "payment_status": order.payment_status,
        "total_amount": order.total_amount,
        "base_amount": order.base_amount,
        "tax_amount": order.tax_amount,
        "currency_code": order.currency_code,
        "amount_paid": order.amount_paid,
        "number_of_travelers": order.number_of_travelers,
        "contact_email": order.contact_email,
        "contact_phone": order.contact_phone,
        "flight_offer_data": order.flight_offer_data,
        "itineraries": order.itineraries,
        "validating_airline": order.validating_airline,
        "operating_airlines": order.operating_airlines,
        "documents": order.documents,
        "ticket_numbers": order.ticket_numbers,
        "schedule_changed": order.schedule_changed,
        "new_slices": order.new_slices,
        "notes": order.notes,
        "expires_at": order.expires_at,
        "ticketed_at": order.ticketed_at,
        "cancelled_at": order.cancelled_at,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class FlightOrderRepoSQL(FlightOrderRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, order: FlightOrder) -> FlightOrder:
        try:
            result = await self._session.execute(insert(flight_orders).values(**_values(order)))
        except IntegrityError as exc:
            # order_number or active_offer_key collided with a concurrent claim
            raise DuplicateRequestError(order.user_id, order.upstream_offer_id) from exc
        order.id = result.inserted_primary_key[0]
        return order

    async def get_by_id(self, order_id: int) -> FlightOrder | None:
        return await self._fetch_one(flight_orders.c.id == order_id)

    async def get_by_order_number(self, order_number: str) -> FlightOrder | None:
        return await self._fetch_one(flight_orders.c.order_number == order_number)

    async def get_by_provider_order_id(self, provider_order_id: str) -> FlightOrder | None:
        return await self._fetch_one(flight_orders.c.provider_order_id == provider_order_id)

    async def get_by_booking_id(self, booking_id: int) -> FlightOrder | None:
        return await self._fetch_one(flight_orders.c.booking_id == booking_id)

    async def find_active_by_offer(self, user_id: str, upstream_offer_id: str) -> FlightOrder | None:
        return await self._fetch_one(flight_orders.c.active_offer_key == f"{user_id}:{upstream_offer_id}")

    async def update(
        self,
        order: FlightOrder,
        expected_statuses: Iterable[FlightOrderStatus] | None = None,
    ) -> bool:
        stmt = update(flight_orders).where(flight_orders.c.id == order.id)
        if expected_statuses is not None:
            stmt = stmt.where(flight_orders.c.status.in_([s.value for s in expected_statuses]))
        try:
            result = await self._session.execute(stmt.values(**_values(order)))
        except IntegrityError as exc:
            raise DuplicateRequestError(order.user_id, order.upstream_offer_id) from exc
        return result.rowcount == 1

    async def delete(self, order_id: int) -> None:
        await self._session.execute(delete(flight_orders).where(flight_orders.c.id == order_id))

    async def list_by_user(
        self, user_id: str, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        return await self._page(flight_orders.c.user_id == user_id, offset, limit)

    async def list_all(
        self, status: FlightOrderStatus | None, offset: int, limit: int
    ) -> tuple[Sequence[FlightOrder], int]:
        condition = flight_orders.c.status == status.value if status is not None else None
        return await self._page(condition, offset, limit)

    async def _page(self, condition, offset: int, limit: int) -> tuple[list[FlightOrder], int]:
        stmt = select(flight_orders).order_by(flight_orders.c.id.desc()).offset(offset).limit(limit)
        count_stmt = select(func.count()).select_from(flight_orders)
        if condition is not None:
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)
        total = (await self._session.execute(count_stmt)).scalar_one()
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._map(row) for row in rows], total

    async def _fetch_one(self, condition) -> FlightOrder | None:
        result = await self._session.execute(select(flight_orders).where(condition).limit(1))
        row = result.mappings().first()
        return self._map(row) if row else None

    def _map(self, row) -> FlightOrder:
        return FlightOrder(
            id=row["id"],
            order_number=row["order_number"],
            user_id=row["user_id"],
            booking_id=row["booking_id"],
            provider=ProviderKind(row["provider"]),
            provider_order_id=row["provider_order_id"],
            upstream_offer_id=row["upstream_offer_id"],
            pnr=row["pnr"],
            status=FlightOrderStatus(row["status"]),
            ticketing_status=TicketingStatus(row["ticketing_status"]),
            payment_status=row["payment_status"],
            total_amount=row["total_amount"],
            base_amount=row["base_amount"],
            tax_amount=row["tax_amount"],
            currency_code=row["currency_code"],
            amount_paid=row["amount_paid"],
            number_of_travelers=row["number_of_travelers"],
            contact_email=row["contact_email"],
            contact_phone=row["contact_phone"],
            flight_offer_data=row["flight_offer_data"] or {},
            itineraries=row["itineraries"] or [],
            validating_airline=row["validating_airline"],
            operating_airlines=row["operating_airlines"] or [],
            documents=row["documents"] or [],
            ticket_numbers=row["ticket_numbers"] or [],
            schedule_changed=bool(row["schedule_changed"]),
            new_slices=row["new_slices"],
            notes=row["notes"],
            expires_at=as_utc(row["expires_at"]),
            ticketed_at=as_utc(row["ticketed_at"]),
            cancelled_at=as_utc(row["cancelled_at"]),
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )
