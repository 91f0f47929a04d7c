import logging
from typing import Any

import httpx
from pybreaker import CircuitBreaker

from app.application.interfaces.flight_provider import FlightProviderClient
from app.domain.errors import ProviderError, ProviderErrorKind, TimeoutAmbiguousError
from app.infrastructure.circuit_breaker import CircuitBreakerError, call_async

logger = logging.getLogger(__name__)

EXPIRED_MARKERS = ("expired", "no longer available", "offer_no_longer_available")


class UpstreamServerError(Exception):
    """5xx from the provider. Raised inside the breaker so it counts as a failure."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def response_json(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


class HttpFlightProvider(FlightProviderClient):
    """
    Shared HTTP plumbing for provider clients.

    Every call goes through the provider's circuit breaker with an explicit
    timeout and no retries. Failures come out as ProviderError, or as
    TimeoutAmbiguousError when the provider did not answer in time.
    """

    def __init__(self, base_url: str, breaker: CircuitBreaker, timeout_seconds: float = 20.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._breaker = breaker
        self._timeout = timeout_seconds

    async def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _error_detail(self, body: dict[str, Any]) -> tuple[str | None, str | None]:
        """Returns (message, code) from an error body."""
        raise NotImplementedError

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.request(method, url, **kwargs)
        if response.status_code >= 500:
            raise UpstreamServerError(response)
        return response

    async def _call(self, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return await call_async(self._breaker, self._send, method, url, **kwargs)
        except CircuitBreakerError as exc:
            logger.error(
                "Provider circuit breaker is open - service unavailable",
                extra={"provider": self.name, "operation": operation},
            )
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE,
                f"{self.name} is temporarily unavailable",
                provider=self.name,
            ) from exc
        except httpx.TimeoutException as exc:
            logger.warning(
                "Provider request timeout",
                extra={"provider": self.name, "operation": operation, "timeout": self._timeout},
            )
            raise TimeoutAmbiguousError(operation, self._timeout, self.name) from exc
        except UpstreamServerError as exc:
            message, _ = self._error_detail(response_json(exc.response))
            logger.error(
                "Provider server error",
                extra={"provider": self.name, "operation": operation, "status": exc.response.status_code},
            )
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE,
                message or f"{self.name} returned HTTP {exc.response.status_code}",
                provider=self.name,
                http_status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Provider HTTP error", exc_info=exc, extra={"provider": self.name, "operation": operation})
            raise ProviderError(
                ProviderErrorKind.UPSTREAM_UNAVAILABLE, f"{self.name} request failed: {exc}", provider=self.name
            ) from exc

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = await self._headers()
        response = await self._call(method, path, operation, headers=headers, params=params, json=json)
        if response.status_code >= 400:
            raise self._client_error(response, operation)
        if response.status_code == 204:
            return {}
        return response_json(response)

    def _client_error(self, response: httpx.Response, operation: str) -> ProviderError:
        message, code = self._error_detail(response_json(response))
        detail = message or f"{self.name} rejected {operation} (HTTP {response.status_code})"
        marker = f"{code or ''} {detail}".lower()
        if response.status_code == 429:
            kind = ProviderErrorKind.RATE_LIMITED
        elif any(m in marker for m in EXPIRED_MARKERS):
            kind = ProviderErrorKind.OFFER_EXPIRED
        else:
            kind = ProviderErrorKind.INVALID_REQUEST
        logger.warning(
            "Provider rejected request",
            extra={"provider": self.name, "operation": operation, "status": response.status_code, "code": code},
        )
        return ProviderError(kind, detail, provider=self.name, http_status=response.status_code)
