"""Authenticated JSON client shared by both providers."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable, Literal, Optional

import httpx

from ..constants import DEFAULT_CACHE_TTL_MS, DEFAULT_RETRY_ATTEMPTS, Provider
from ..contracts import LogEntry
from ..errors import APIError
from ..logstream import ServerLogger
from ..utils.retry import with_retry
from .cache import RequestCache
from .logger import ApiLogger, redact_headers

logger = logging.getLogger(__name__)

TokenGetter = Callable[[], Awaitable[str]]
ErrorHook = Callable[[Exception], Exception]
ResponseType = Literal["json", "text"]

GENERIC_FAILURE = "Connection failed. Please try again."


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def fetch_with_auth(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    token: str,
    provider: Provider,
    *,
    body: Any = None,
    api_logger: Optional[ApiLogger] = None,
    server_logger: Optional[ServerLogger] = None,
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    backoff: Optional[Callable[[int], Awaitable[None]]] = None,
) -> httpx.Response:
    """Send one bearer-authenticated request, logging it on both sides.

    Network-level failures are retried; any HTTP response, error statuses
    included, is returned to the caller untouched.
    """
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    content = json.dumps(body) if body is not None else None
    log_id = None
    if api_logger is not None:
        log_id = api_logger.log_request(method, url, headers, body, provider.value)
    logger.debug(f"[API Request] {method} {url} headers={redact_headers(headers)}")

    started = time.perf_counter()
    try:
        response = await with_retry(
            lambda: http.request(method, url, headers=headers, content=content),
            max_attempts=max_attempts,
            backoff=backoff,
        )
    except Exception as exc:
        duration = (time.perf_counter() - started) * 1000
        logger.error(f"[API Error] {method} {url} failed after {duration:.0f}ms: {exc!r}")
        if api_logger is not None and log_id is not None:
            api_logger.log_error(log_id, exc, duration)
        if server_logger is not None:
            server_logger.log(
                LogEntry(
                    level="error",
                    category="api",
                    provider=provider.value,
                    metadata={"method": method, "url": url, "error": str(exc), "duration": duration},
                )
            )
        raise

    duration = (time.perf_counter() - started) * 1000
    logger.debug(f"[API Response] {response.status_code} for {method} {url} in {duration:.0f}ms")
    if api_logger is not None and log_id is not None:
        api_logger.log_response(log_id, response.status_code, _decode_body(response), duration)
    if server_logger is not None:
        server_logger.log(
            LogEntry(
                level="error" if response.is_error else "info",
                category="api",
                provider=provider.value,
                metadata={
                    "method": method,
                    "url": url,
                    "status": response.status_code,
                    "duration": duration,
                },
            )
        )
    return response


def parse_json_response(response: httpx.Response) -> Any:
    """Return the decoded body or raise :class:`APIError` for error statuses."""
    if response.is_error:
        payload = _decode_body(response)
        message = GENERIC_FAILURE
        code = None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            message = payload["error"].get("message") or GENERIC_FAILURE
            raw_code = payload["error"].get("code")
            code = str(raw_code) if raw_code is not None else None
        raise APIError(message, response.status_code, code)
    if response.status_code == 204 or not response.content:
        return {}
    return response.json()


class ApiClient:
    """Provider-bound client: token injection, caching and error hooks.

    GET requests go through the shared :class:`RequestCache`; any successful
    mutation drops the provider's cached entries. Every failure is passed
    through ``handle_provider_error`` before it propagates.
    """

    def __init__(
        self,
        provider: Provider,
        get_token: TokenGetter,
        handle_provider_error: ErrorHook,
        *,
        http: Optional[httpx.AsyncClient] = None,
        cache: Optional[RequestCache] = None,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        backoff: Optional[Callable[[int], Awaitable[None]]] = None,
        server_logger: Optional[ServerLogger] = None,
    ) -> None:
        self.provider = provider
        self._get_token = get_token
        self._handle_provider_error = handle_provider_error
        self._http = http or httpx.AsyncClient(timeout=30.0)
        self._owns_http = http is None
        self._cache = cache
        self._cache_ttl_ms = cache_ttl_ms
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._server_logger = server_logger

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def request(
        self,
        url: str,
        method: str = "GET",
        body: Any = None,
        response_type: ResponseType = "json",
        logger: Optional[ApiLogger] = None,
    ) -> Any:
        try:
            if method == "GET" and self._cache is not None:
                key = f"{self.provider.value}:{response_type}:{url}"
                return await self._cache.request(
                    key,
                    lambda: self._send(url, method, body, response_type, logger),
                    self._cache_ttl_ms,
                )
            result = await self._send(url, method, body, response_type, logger)
            if method != "GET" and self._cache is not None:
                self._cache.invalidate(f"{self.provider.value}:")
            return result
        except Exception as exc:
            enriched = self._handle_provider_error(exc)
            if enriched is exc:
                raise
            raise enriched from exc

    async def _send(
        self,
        url: str,
        method: str,
        body: Any,
        response_type: ResponseType,
        api_logger: Optional[ApiLogger],
    ) -> Any:
        token = await self._get_token()
        response = await fetch_with_auth(
            self._http,
            method,
            url,
            token,
            self.provider,
            body=body,
            api_logger=api_logger,
            server_logger=self._server_logger,
            max_attempts=self._max_attempts,
            backoff=self._backoff,
        )
        if response_type == "text":
            if response.is_error:
                raise APIError(
                    f"Request failed with status {response.status_code}", response.status_code
                )
            return response.text
        return parse_json_response(response)

    async def get(self, url: str, logger: Optional[ApiLogger] = None) -> Any:
        return await self.request(url, "GET", logger=logger)

    async def get_text(self, url: str, logger: Optional[ApiLogger] = None) -> str:
        return await self.request(url, "GET", response_type="text", logger=logger)

    async def post(self, url: str, body: Any = None, logger: Optional[ApiLogger] = None) -> Any:
        return await self.request(url, "POST", body if body is not None else {}, logger=logger)

    async def put(self, url: str, body: Any, logger: Optional[ApiLogger] = None) -> Any:
        return await self.request(url, "PUT", body, logger=logger)

    async def patch(self, url: str, body: Any, logger: Optional[ApiLogger] = None) -> Any:
        return await self.request(url, "PATCH", body, logger=logger)
