"""Entidades del dominio de reservas de vuelos."""

from app.domain.entities.booking import Booking, BookingPaymentStatus, BookingStatus
from app.domain.entities.flight_offer import (
    FlightOffer,
    OfferConditions,
    OfferPassenger,
    OfferPrice,
    OfferSegment,
    OfferSlice,
    ProviderKind,
    SegmentEndpoint,
)
from app.domain.entities.flight_order import FlightOrder, FlightOrderStatus, TicketingStatus
from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.payment import Payment, PaymentFlow, PaymentStatus
from app.domain.entities.traveler import ContactInfo, Gender, PassengerType, Traveler, TravelerDocument

__all__ = [
    # Offer
    "FlightOffer",
    "OfferConditions",
    "OfferPassenger",
    "OfferPrice",
    "OfferSegment",
    "OfferSlice",
    "ProviderKind",
    "SegmentEndpoint",
    # Order
    "FlightOrder",
    "FlightOrderStatus",
    "TicketingStatus",
    "FlightSegment",
    # Booking
    "Booking",
    "BookingStatus",
    "BookingPaymentStatus",
    # Payment
    "Payment",
    "PaymentFlow",
    "PaymentStatus",
    # Travelers
    "ContactInfo",
    "Gender",
    "PassengerType",
    "Traveler",
    "TravelerDocument",
]
