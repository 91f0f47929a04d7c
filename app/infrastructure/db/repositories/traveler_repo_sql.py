from collections.abc import Sequence

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.traveler_repo import FlightSegmentRepo, TravelerRepo
from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.traveler import Traveler, TravelerDocument
from app.infrastructure.db.tables import flight_segments, traveler_documents, travelers


class TravelerRepoSQL(TravelerRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, items: Sequence[Traveler]) -> list[Traveler]:
        for traveler in items:
            result = await self._session.execute(
                insert(travelers).values(
                    booking_id=traveler.booking_id,
                    flight_order_id=traveler.flight_order_id,
                    offer_passenger_id=traveler.offer_passenger_id,
                    passenger_type=traveler.passenger_type,
                    title=traveler.resolved_title,
                    first_name=traveler.first_name,
                    last_name=traveler.last_name,
                    date_of_birth=traveler.date_of_birth,
                    gender=traveler.gender,
                    email=traveler.email,
                    phone_number=traveler.phone_number,
                    phone_country_code=traveler.phone_country_code,
                    nationality=traveler.resolved_nationality,
                )
            )
            traveler.id = result.inserted_primary_key[0]
            for document in traveler.documents:
                doc_result = await self._session.execute(
                    insert(traveler_documents).values(
                        traveler_id=traveler.id,
                        document_type=(document.document_type or "passport").lower(),
                        number=document.number,
                        expiry_date=document.expiry_date,
                        issuing_country=document.issuing_country,
                        nationality=document.nationality,
                        holder=document.holder,
                    )
                )
                document.id = doc_result.inserted_primary_key[0]
                document.traveler_id = traveler.id
        return list(items)

    async def list_by_order(self, flight_order_id: int) -> list[Traveler]:
        result = await self._session.execute(
            select(travelers).where(travelers.c.flight_order_id == flight_order_id).order_by(travelers.c.id)
        )
        rows = result.mappings().all()
        if not rows:
            return []

        doc_result = await self._session.execute(
            select(traveler_documents)
            .where(traveler_documents.c.traveler_id.in_([row["id"] for row in rows]))
            .order_by(traveler_documents.c.id)
        )
        documents: dict[int, list[TravelerDocument]] = {}
        for doc in doc_result.mappings().all():
            documents.setdefault(doc["traveler_id"], []).append(
                TravelerDocument(
                    id=doc["id"],
                    traveler_id=doc["traveler_id"],
                    document_type=doc["document_type"],
                    number=doc["number"],
                    expiry_date=doc["expiry_date"],
                    issuing_country=doc["issuing_country"],
                    nationality=doc["nationality"],
                    holder=bool(doc["holder"]),
                )
            )

        return [
            Traveler(
                id=row["id"],
                booking_id=row["booking_id"],
                flight_order_id=row["flight_order_id"],
                offer_passenger_id=row["offer_passenger_id"],
                passenger_type=row["passenger_type"],
                title=row["title"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                date_of_birth=row["date_of_birth"],
                gender=row["gender"],
                email=row["email"],
                phone_number=row["phone_number"],
                phone_country_code=row["phone_country_code"],
                nationality=row["nationality"],
                documents=documents.get(row["id"], []),
            )
            for row in rows
        ]


class FlightSegmentRepoSQL(FlightSegmentRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, segments: Sequence[FlightSegment]) -> list[FlightSegment]:
        for segment in segments:
            result = await self._session.execute(
                insert(flight_segments).values(
                    flight_order_id=segment.flight_order_id,
                    segment_number=segment.segment_number,
                    departure_airport=segment.departure_airport,
                    departure_time=segment.departure_time,
                    departure_terminal=segment.departure_terminal,
                    arrival_airport=segment.arrival_airport,
                    arrival_time=segment.arrival_time,
                    arrival_terminal=segment.arrival_terminal,
                    marketing_carrier=segment.marketing_carrier,
                    marketing_flight_number=segment.marketing_flight_number,
                    operating_carrier=segment.operating_carrier,
                    operating_flight_number=segment.operating_flight_number,
                    aircraft=segment.aircraft,
                    cabin_class=segment.cabin_class,
                    duration_minutes=segment.duration_minutes,
                    checked_bags=segment.checked_bags,
                    carry_on_bags=segment.carry_on_bags,
                    is_codeshare=segment.is_codeshare,
                )
            )
            segment.id = result.inserted_primary_key[0]
        return list(segments)

    async def list_by_order(self, flight_order_id: int) -> list[FlightSegment]:
        result = await self._session.execute(
            select(flight_segments)
            .where(flight_segments.c.flight_order_id == flight_order_id)
            .order_by(flight_segments.c.segment_number)
        )
        return [FlightSegment(**dict(row)) for row in result.mappings().all()]
