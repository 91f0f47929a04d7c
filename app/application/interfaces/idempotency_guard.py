from dataclasses import dataclass


@dataclass
class CachedResponse:
    status_code: int
    body: bytes
    request_hash: str
    stored_at: float


class IdempotencyGuard:
    """Replays the stored response of a POST carrying an already-seen Idempotency-Key."""

    async def check(self, key: str, request_hash: str) -> CachedResponse | None:
        """Returns the live cached response, or None. Raises IdempotencyConflictError
        when the key was used with a different payload."""
        raise NotImplementedError

    async def record(self, key: str, request_hash: str, status_code: int, body: bytes) -> None:
        raise NotImplementedError
