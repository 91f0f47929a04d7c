from fastapi import APIRouter, Depends, Header, Query, Response, status

from app.api.dependencies import get_caller, get_idempotency_guard, get_use_cases
from app.api.idempotency import replay_or_execute
from app.api.schemas.flights import (
    ChangeConfirmRequest,
    ChangeOptionsRequest,
    CreateOrderRequest,
    OfferRequest,
    RefundOrderRequest,
)
from app.api.schemas.serializers import (
    booking_result_out,
    cancellation_out,
    change_offer_out,
    change_result_out,
    offer_out,
    order_details_out,
    order_page_out,
    pending_out,
    place_out,
    provider_out,
    refund_quote_out,
    service_out,
)
from app.application.dtos.order_dto import Caller
from app.application.interfaces.flight_provider import SearchCriteria
from app.application.interfaces.idempotency_guard import IdempotencyGuard
from app.application.services.offer_payload import parse_offer
from app.application.use_cases.create_flight_order import BookingRequest

router = APIRouter(prefix="/flights")


def booking_request(caller: Caller, payload: CreateOrderRequest) -> BookingRequest:
    return BookingRequest(
        user_id=caller.user_id,
        offer=parse_offer(payload.flight_offer),
        travelers=[traveler.to_domain() for traveler in payload.travelers],
        contact=payload.contacts.to_domain(),
        remarks=payload.remarks,
    )


@router.get("/search")
async def search_flights(
    origin: str = Query(...),
    destination: str = Query(...),
    departure_date: str = Query(..., alias="departureDate"),
    return_date: str | None = Query(default=None, alias="returnDate"),
    adults: int = Query(default=1),
    children: int = Query(default=0),
    infants: int = Query(default=0),
    travel_class: str = Query(default="ECONOMY", alias="travelClass"),
    currency_code: str = Query(default="USD", alias="currencyCode"),
    non_stop: bool = Query(default=False, alias="nonStop"),
    provider: str | None = Query(default=None),
    use_cases=Depends(get_use_cases),
) -> dict:
    criteria = SearchCriteria(
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        return_date=return_date,
        adults=adults,
        children=children,
        infants=infants,
        travel_class=travel_class,
        non_stop=non_stop,
        currency_code=currency_code,
    )
    offers = await use_cases["search_flights"].execute(criteria, provider)
    return {"count": len(offers), "data": [offer_out(offer) for offer in offers]}


@router.get("/providers")
async def list_providers(use_cases=Depends(get_use_cases)) -> dict:
    return {"providers": [provider_out(info) for info in use_cases["list_providers"].execute()]}


@router.get("/locations/search")
async def search_locations(
    keyword: str = Query(default=""),
    provider: str | None = Query(default=None),
    use_cases=Depends(get_use_cases),
) -> dict:
    places = await use_cases["search_locations"].execute(keyword, provider)
    return {"data": [place_out(place) for place in places]}


@router.post("/confirm-price")
async def confirm_price(payload: OfferRequest, use_cases=Depends(get_use_cases)) -> dict:
    confirmation = await use_cases["confirm_price"].execute(payload.flight_offer)
    return {"priceChanged": confirmation.price_changed, "data": offer_out(confirmation.offer)}


@router.post("/seat-maps")
async def seat_maps(payload: OfferRequest, use_cases=Depends(get_use_cases)) -> dict:
    return {"data": await use_cases["seat_maps"].execute(payload.flight_offer)}


@router.get("/offers/{offer_id}/ancillaries")
async def offer_ancillaries(
    offer_id: str,
    provider: str | None = Query(default=None),
    use_cases=Depends(get_use_cases),
) -> dict:
    services = await use_cases["ancillaries"].execute(offer_id, provider)
    return {"data": [service_out(service) for service in services]}


@router.post("/create-order")
async def create_order(
    payload: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    idem_key: str | None = Header(default=None, convert_underscores=False, alias="Idempotency-Key"),
    legacy_idem_key: str | None = Header(default=None, convert_underscores=False, alias="X-Idempotency-Key"),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    use_cases=Depends(get_use_cases),
) -> Response:
    async def handler():
        result = await use_cases["create_flight_order"].execute(booking_request(caller, payload))
        if result.pending:
            return status.HTTP_202_ACCEPTED, pending_out(result.order)
        code = status.HTTP_200_OK if result.duplicate else status.HTTP_201_CREATED
        return code, booking_result_out(result)

    return await replay_or_execute(
        guard,
        idem_key or legacy_idem_key,
        scope=f"{caller.user_id}:create-order",
        payload=payload.model_dump(mode="json", by_alias=True),
        handler=handler,
    )


@router.get("/my-orders")
async def my_orders(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    return order_page_out(await use_cases["list_my_orders"].execute(caller, page, limit))


@router.get("/orders")
async def all_orders(
    order_status: str | None = Query(default=None, alias="status"),
    page: int = Query(default=1),
    limit: int = Query(default=20),
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    return order_page_out(await use_cases["list_all_orders"].execute(caller, order_status, page, limit))


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    return order_details_out(await use_cases["get_flight_order"].execute(order_id, caller))


@router.delete("/orders/{order_id}")
async def cancel_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    return cancellation_out(await use_cases["cancel_flight_order"].execute(order_id, caller))


@router.get("/orders/{order_id}/refund-quote")
async def refund_quote(
    order_id: str,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    return refund_quote_out(await use_cases["refund_quote"].execute(order_id, caller))


@router.post("/orders/{order_id}/refund")
async def refund_order(
    order_id: str,
    payload: RefundOrderRequest | None = None,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    reason = payload.reason if payload else None
    return cancellation_out(await use_cases["refund_flight_order"].execute(order_id, caller, reason))


@router.post("/orders/{order_id}/change-options")
async def change_options(
    order_id: str,
    payload: ChangeOptionsRequest,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    offers = await use_cases["change_options"].execute(order_id, caller, payload.slices)
    return {"data": [change_offer_out(offer) for offer in offers]}


@router.post("/orders/{order_id}/change-confirm")
async def change_confirm(
    order_id: str,
    payload: ChangeConfirmRequest,
    caller: Caller = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> dict:
    result = await use_cases["confirm_change"].execute(
        order_id, caller, payload.change_offer_id, payload.amount, payload.currency
    )
    return change_result_out(result)
