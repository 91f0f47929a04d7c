import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.dependencies import get_use_cases
from app.config import Settings, get_settings
from app.infrastructure.webhook_signature import verify_duffel_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

SIGNATURE_HEADER = "x-duffel-signature"


@router.post("/duffel", status_code=status.HTTP_200_OK)
async def duffel_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    use_cases=Depends(get_use_cases),
) -> dict:
    raw_body = await request.body()

    if settings.duffel_webhook_secret:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not verify_duffel_signature(settings.duffel_webhook_secret, raw_body, signature):
            logger.warning("Rejected webhook with invalid signature", extra={"path": request.url.path})
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook body must be an object")

    result = await use_cases["reconcile_webhook"].execute(body)
    return {
        "received": True,
        "eventId": result.event_id,
        "event": result.event_type,
        "handled": result.handled,
        "duplicate": result.duplicate,
        "orderNumber": result.order_number,
    }
