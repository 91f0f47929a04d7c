"""Entidad FlightSegment - tramo volado de una orden, desacoplado del JSON del proveedor."""

from dataclasses import dataclass

from app.domain.entities.flight_offer import FlightOffer


@dataclass
class FlightSegment:
    flight_order_id: int
    segment_number: int
    departure_airport: str
    departure_time: str
    arrival_airport: str
    arrival_time: str
    marketing_carrier: str
    marketing_flight_number: str
    departure_terminal: str | None = None
    arrival_terminal: str | None = None
    operating_carrier: str | None = None
    operating_flight_number: str | None = None
    aircraft: str | None = None
    cabin_class: str = "economy"
    duration_minutes: int | None = None
    checked_bags: int = 0
    carry_on_bags: int = 1
    is_codeshare: bool = False
    id: int | None = None


def segments_from_offer(offer: FlightOffer, flight_order_id: int) -> list[FlightSegment]:
    """Aplana itinerarios/slices en segmentos numerados 1..n."""
    rows: list[FlightSegment] = []
    for number, segment in enumerate(offer.segments, start=1):
        rows.append(
            FlightSegment(
                flight_order_id=flight_order_id,
                segment_number=number,
                departure_airport=segment.departure.iata_code,
                departure_time=segment.departure.at,
                departure_terminal=segment.departure.terminal,
                arrival_airport=segment.arrival.iata_code,
                arrival_time=segment.arrival.at,
                arrival_terminal=segment.arrival.terminal,
                marketing_carrier=segment.carrier_code,
                marketing_flight_number=segment.number,
                operating_carrier=segment.operating_carrier_code or segment.carrier_code,
                operating_flight_number=segment.operating_number or segment.number,
                aircraft=segment.aircraft,
                cabin_class=segment.cabin or "economy",
                duration_minutes=segment.duration_minutes,
                checked_bags=segment.checked_bags,
                carry_on_bags=segment.carry_on_bags,
                is_codeshare=segment.is_codeshare,
            )
        )
    return rows
