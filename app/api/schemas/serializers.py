"""JSON shapes returned by the API. Money is rendered as decimal strings."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from app.application.dtos.order_dto import CancellationOutcome, FlightOrderDetails, OrderPage, RefundQuote
from app.application.dtos.payment_dto import CallbackOutcome, CheckoutResult
from app.application.interfaces.payment_gateway import PaymentVerification
from app.application.use_cases.create_flight_order import BookingResult
from app.application.use_cases.flight_extras import ProviderInfo
from app.domain.entities.booking import Booking
from app.domain.entities.flight_offer import FlightOffer
from app.domain.entities.flight_order import FlightOrder
from app.domain.entities.flight_segment import FlightSegment
from app.domain.entities.payment import Payment
from app.domain.entities.provider_order import AncillaryService, OrderChangeOffer, OrderChangeResult, Place
from app.domain.entities.traveler import Traveler


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def offer_out(offer: FlightOffer) -> dict[str, Any]:
    # The snapshot is also what clients send back to confirm-price and create-order.
    return offer.to_snapshot()


def provider_out(info: ProviderInfo) -> dict[str, Any]:
    return {"name": info.name, "kind": info.kind, "default": info.default}


def place_out(place: Place) -> dict[str, Any]:
    return {
        "code": place.code,
        "name": place.name,
        "type": place.type,
        "city": place.city,
        "country": place.country,
        "countryCode": place.country_code,
        "latitude": place.latitude,
        "longitude": place.longitude,
        "timezone": place.timezone,
    }


def service_out(service: AncillaryService) -> dict[str, Any]:
    return {
        "id": service.id,
        "type": service.type,
        "name": service.name,
        "amount": _money(service.amount),
        "currency": service.currency,
        "description": service.description,
        "passengerId": service.passenger_id,
        "segmentId": service.segment_id,
    }


def booking_out(booking: Booking | None) -> dict[str, Any] | None:
    if booking is None:
        return None
    return {
        "id": booking.id,
        "bookingNumber": booking.booking_number,
        "bookingStatus": booking.booking_status.value,
        "paymentStatus": booking.payment_status.value,
        "paymentMethod": booking.payment_method,
        "totalAmount": _money(booking.total_amount),
        "currencyCode": booking.currency_code,
        "createdAt": _ts(booking.created_at),
    }


def order_summary_out(order: FlightOrder) -> dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "provider": order.provider.provider_name,
        "providerOrderId": order.provider_order_id,
        "pnr": order.pnr,
        "status": order.status.value,
        "ticketingStatus": order.ticketing_status.value,
        "paymentStatus": order.payment_status,
        "totalAmount": _money(order.total_amount),
        "baseAmount": _money(order.base_amount),
        "taxAmount": _money(order.tax_amount),
        "currencyCode": order.currency_code,
        "amountPaid": _money(order.amount_paid),
        "numberOfTravelers": order.number_of_travelers,
        "validatingAirline": order.validating_airline,
        "scheduleChanged": order.schedule_changed,
        "expiresAt": _ts(order.expires_at),
        "ticketedAt": _ts(order.ticketed_at),
        "cancelledAt": _ts(order.cancelled_at),
        "createdAt": _ts(order.created_at),
    }


def order_out(order: FlightOrder) -> dict[str, Any]:
    return {
        **order_summary_out(order),
        "contactEmail": order.contact_email,
        "contactPhone": order.contact_phone,
        "itineraries": order.itineraries,
        "operatingAirlines": order.operating_airlines,
        "documents": order.documents,
        "ticketNumbers": order.ticket_numbers,
        "newSlices": order.new_slices,
        "notes": order.notes,
    }


def traveler_out(traveler: Traveler) -> dict[str, Any]:
    snapshot = traveler.to_snapshot()
    # Document numbers stay server-side.
    snapshot["documents"] = [
        {key: value for key, value in doc.items() if key != "number"} for doc in snapshot["documents"]
    ]
    return {"id": traveler.id, **snapshot}


def segment_out(segment: FlightSegment) -> dict[str, Any]:
    return {
        "segmentNumber": segment.segment_number,
        "departureAirport": segment.departure_airport,
        "departureTime": segment.departure_time,
        "departureTerminal": segment.departure_terminal,
        "arrivalAirport": segment.arrival_airport,
        "arrivalTime": segment.arrival_time,
        "arrivalTerminal": segment.arrival_terminal,
        "marketingCarrier": segment.marketing_carrier,
        "marketingFlightNumber": segment.marketing_flight_number,
        "operatingCarrier": segment.operating_carrier,
        "operatingFlightNumber": segment.operating_flight_number,
        "aircraft": segment.aircraft,
        "cabinClass": segment.cabin_class,
        "durationMinutes": segment.duration_minutes,
        "checkedBags": segment.checked_bags,
        "carryOnBags": segment.carry_on_bags,
        "isCodeshare": segment.is_codeshare,
    }


def order_details_out(details: FlightOrderDetails) -> dict[str, Any]:
    return {
        **order_out(details.order),
        "booking": booking_out(details.booking),
        "travelers": [traveler_out(t) for t in details.travelers],
        "segments": [segment_out(s) for s in details.segments],
    }


def order_page_out(page: OrderPage) -> dict[str, Any]:
    return {
        "orders": [order_summary_out(order) for order in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "totalPages": page.total_pages,
        },
    }


def booking_result_out(result: BookingResult) -> dict[str, Any]:
    body = {
        "success": True,
        "duplicate": result.duplicate,
        "order": order_out(result.order),
        "booking": booking_out(result.booking),
    }
    if result.travelers:
        body["travelers"] = [traveler_out(t) for t in result.travelers]
    return body


def pending_out(order: FlightOrder) -> dict[str, Any]:
    return {
        "success": False,
        "timeout": True,
        "orderNumber": order.order_number,
        "status": order.status.value,
        "message": "The airline did not answer in time. Check the order status before retrying.",
    }


def refund_quote_out(quote: RefundQuote) -> dict[str, Any]:
    return {
        "refundable": quote.refundable,
        "penaltyAmount": _money(quote.penalty_amount),
        "estimatedRefund": _money(quote.estimated_refund),
        "currency": quote.currency,
    }


def cancellation_out(outcome: CancellationOutcome) -> dict[str, Any]:
    return {
        "success": True,
        "order": order_summary_out(outcome.order),
        "refundAmount": _money(outcome.refund_amount),
        "refundCurrency": outcome.refund_currency,
    }


def change_offer_out(offer: OrderChangeOffer) -> dict[str, Any]:
    return {
        "id": offer.id,
        "newTotalAmount": _money(offer.new_total_amount),
        "changeTotalAmount": _money(offer.change_total_amount),
        "penaltyAmount": _money(offer.penalty_amount),
        "currency": offer.currency,
        "expiresAt": offer.expires_at,
        "newSlices": offer.new_slices,
    }


def change_result_out(result: OrderChangeResult) -> dict[str, Any]:
    return {
        "success": True,
        "changeId": result.change_id,
        "providerOrderId": result.provider_order_id,
        "status": result.status,
        "newTotalAmount": _money(result.new_total_amount),
        "currency": result.currency,
        "refundAmount": _money(result.refund_amount),
    }


def payment_out(payment: Payment | None) -> dict[str, Any] | None:
    if payment is None:
        return None
    return {
        "id": payment.id,
        "gateway": payment.gateway,
        "flow": payment.flow.value,
        "status": payment.status.value,
        "amount": _money(payment.amount),
        "currencyCode": payment.currency_code,
        "refundedAmount": _money(payment.refunded_amount),
        "transactionRef": payment.transaction_ref,
        "cartId": payment.cart_id,
        "paymentMethod": payment.payment_method,
        "needsManualReview": payment.needs_manual_review,
        "paidAt": _ts(payment.paid_at),
        "refundedAt": _ts(payment.refunded_at),
    }


def checkout_out(result: CheckoutResult) -> dict[str, Any]:
    if result.pending and result.order is not None:
        return pending_out(result.order)
    return {
        "success": True,
        "duplicate": result.duplicate,
        "paymentUrl": result.payment_url,
        "transactionRef": result.transaction_ref,
        "payment": payment_out(result.payment),
        "order": order_summary_out(result.order) if result.order else None,
        "booking": booking_out(result.booking),
    }


def callback_out(outcome: CallbackOutcome) -> dict[str, Any]:
    return {
        "success": True,
        "alreadyProcessed": outcome.already_processed,
        "payment": payment_out(outcome.payment),
        "order": order_summary_out(outcome.order) if outcome.order else None,
        "booking": booking_out(outcome.booking),
    }


def verification_out(verification: PaymentVerification) -> dict[str, Any]:
    return {
        "approved": verification.approved,
        "transactionRef": verification.transaction_ref,
        "amount": _money(verification.amount),
        "currency": verification.currency,
        "status": verification.status,
        "message": verification.message,
        "paymentMethod": verification.payment_method,
    }
