"""
Async HTTP client for the VeriLens backend API.

Wraps a persistent ``httpx.AsyncClient`` with:
- a per-request ``x-request-id`` header (kept if the caller set one)
- an optional bearer token provider consulted on every request
- debug logging of requests and responses
- exponential retries on transport errors and 5xx / 429 responses

Exhausted retries surface as a single ApiRequestError with the last
failure chained.
"""

import logging
import uuid
from typing import Any, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from verilens.app.config import Settings, get_settings
from verilens.app.errors import ApiRequestError

logger = logging.getLogger("verilens.api.client")

TokenProvider = Callable[[], Optional[str]]

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return False


class ApiClient:
    def __init__(
        self,
        token_provider: Optional[TokenProvider] = None,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        wait: Optional[wait_base] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._token_provider = token_provider

        # 200ms * 2**attempt plus up to 100ms jitter
        self._wait = wait or (
            wait_exponential(multiplier=0.2, min=0.2, max=10)
            + wait_random(0, 0.1)
        )

        self.client = httpx.AsyncClient(
            base_url=str(self.settings.api_base_url),
            timeout=self.settings.api_request_timeout_ms / 1000.0,
            transport=transport,
            event_hooks={
                "request": [self._on_request],
                "response": [self._on_response],
            },
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    async def _on_request(self, request: httpx.Request) -> None:
        if "x-request-id" not in request.headers:
            request.headers["x-request-id"] = uuid.uuid4().hex

        if self._token_provider is not None:
            token = self._token_provider()
            if token:
                request.headers["Authorization"] = f"Bearer {token}"

        logger.debug(
            "http_request",
            extra={"method": request.method, "url": str(request.url)},
        )

    async def _on_response(self, response: httpx.Response) -> None:
        logger.debug(
            "http_response",
            extra={
                "url": str(response.request.url),
                "status_code": response.status_code,
            },
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        retries: Optional[int] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiRequestError: the request failed on every attempt, or
                failed with a non-retryable status.
        """
        max_retries = (
            self.settings.api_max_retries if retries is None else retries
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_retries + 1),
                wait=self._wait,
                retry=retry_if_exception(_is_retryable),
                before_sleep=self._log_retry,
            ):
                with attempt:
                    response = await self.client.request(method, url, **kwargs)
                    response.raise_for_status()
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise ApiRequestError(
                "API request failed",
                details={"method": method, "url": url},
            ) from last
        except httpx.HTTPError as exc:
            logger.error(
                "http_error",
                extra={"url": url, "error_type": type(exc).__name__},
            )
            raise ApiRequestError(
                "API request failed",
                details={"method": method, "url": url},
            ) from exc

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _log_retry(retry_state: Any) -> None:
        outcome = retry_state.outcome
        logger.warning(
            "retrying_api_request",
            extra={
                "attempt": retry_state.attempt_number,
                "error_type": (
                    type(outcome.exception()).__name__
                    if outcome is not None and outcome.failed
                    else None
                ),
            },
        )
