import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.application.interfaces.idempotency_guard import IdempotencyGuard

logger = logging.getLogger(__name__)

REPLAY_HEADER = "Idempotent-Replay"

Handler = Callable[[], Awaitable[tuple[int, dict[str, Any]]]]


def hash_request(payload: Any) -> str:
    canonical = json.dumps(jsonable_encoder(payload), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


async def replay_or_execute(
    guard: IdempotencyGuard,
    idem_key: str | None,
    scope: str,
    payload: Any,
    handler: Handler,
) -> Response:
    """
    Runs `handler` once per Idempotency-Key.

    A repeated key with the same payload gets the stored response back; a different
    payload raises IdempotencyConflictError from the guard. Requests without a key
    always execute.
    """
    if not idem_key:
        status_code, body = await handler()
        return JSONResponse(status_code=status_code, content=jsonable_encoder(body))

    key = f"{scope}:{idem_key}"
    request_hash = hash_request(payload)
    cached = await guard.check(key, request_hash)
    if cached is not None:
        logger.info("Replaying idempotent response", extra={"scope": scope, "status_code": cached.status_code})
        return Response(
            content=cached.body,
            status_code=cached.status_code,
            media_type="application/json",
            headers={REPLAY_HEADER: "true"},
        )

    status_code, body = await handler()
    response = JSONResponse(status_code=status_code, content=jsonable_encoder(body))
    await guard.record(key, request_hash, status_code, response.body)
    return response
