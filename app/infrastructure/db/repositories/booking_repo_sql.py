from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.booking_repo import BookingRepo
from app.domain.entities.booking import Booking, BookingPaymentStatus, BookingStatus
from app.infrastructure.db.engine import as_utc
from app.infrastructure.db.tables import bookings


class BookingRepoSQL(BookingRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, booking: Booking) -> Booking:
        result = await self._session.execute(insert(bookings).values(**self._values(booking)))
        booking.id = result.inserted_primary_key[0]
        return booking

    async def get_by_id(self, booking_id: int) -> Booking | None:
        result = await self._session.execute(select(bookings).where(bookings.c.id == booking_id))
        row = result.mappings().first()
        return self._map(row) if row else None

    async def update(self, booking: Booking) -> None:
        await self._session.execute(
            update(bookings).where(bookings.c.id == booking.id).values(**self._values(booking))
        )

    @staticmethod
    def _values(booking: Booking) -> dict:
        return {
            "booking_number": booking.booking_number,
            "user_id": booking.user_id,
            "booking_type": booking.booking_type,
            "booking_status": booking.booking_status.value,
            "payment_status": booking.payment_status.value,
            "payment_method": booking.payment_method,
            "total_amount": booking.total_amount,
            "currency_code": booking.currency_code,
            "contact_email": booking.contact_email,
            "contact_phone": booking.contact_phone,
            "product_type": booking.product_type,
            "product_id": booking.product_id,
            "created_at": booking.created_at,
            "updated_at": booking.updated_at,
        }

    @staticmethod
    def _map(row) -> Booking:
        return Booking(
            id=row["id"],
            booking_number=row["booking_number"],
            user_id=row["user_id"],
            booking_type=row["booking_type"],
            booking_status=BookingStatus(row["booking_status"]),
            payment_status=BookingPaymentStatus(row["payment_status"]),
            payment_method=row["payment_method"],
            total_amount=row["total_amount"],
            currency_code=row["currency_code"],
            contact_email=row["contact_email"],
            contact_phone=row["contact_phone"],
            product_type=row["product_type"],
            product_id=row["product_id"],
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )
