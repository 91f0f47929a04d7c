import threading

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.idempotency_guard import CachedResponse, IdempotencyGuard
from app.domain.errors import IdempotencyConflictError

CACHEABLE_STATUS_CODES = frozenset({200, 201})


class InMemoryIdempotencyGuard(IdempotencyGuard):
    """
    Process-local response cache keyed by Idempotency-Key.

    Entries replay for `ttl_seconds`; expired entries linger until the next write
    sweeps everything older than `purge_seconds`.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ttl_seconds: int = 300,
        purge_seconds: int = 600,
    ) -> None:
        self._clock = clock or SystemClock()
        self._ttl = ttl_seconds
        self._purge = purge_seconds
        self._entries: dict[str, CachedResponse] = {}
        self._lock = threading.Lock()

    async def check(self, key: str, request_hash: str) -> CachedResponse | None:
        now = self._clock.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now - entry.stored_at >= self._ttl:
                return None
            if entry.request_hash != request_hash:
                raise IdempotencyConflictError(key)
            return entry

    async def record(self, key: str, request_hash: str, status_code: int, body: bytes) -> None:
        if status_code not in CACHEABLE_STATUS_CODES:
            return
        now = self._clock.monotonic()
        with self._lock:
            self._sweep(now)
            self._entries[key] = CachedResponse(
                status_code=status_code, body=body, request_hash=request_hash, stored_at=now
            )

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now - entry.stored_at >= self._purge]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
