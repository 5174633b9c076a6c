"""Shared async HTTP helpers used by remote source repositories.

Encapsulates session lifecycle, retries and a short-lived response cache so
repository clients avoid duplicating try/except blocks. Transport failures
never raise from here: after exhausting retries ``get`` reports status ``0``
and the caller decides how to surface it.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import aiohttp

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

HttpResult = Tuple[int, Dict[str, str], bytes]


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


class AsyncHttpClient:
    """aiohttp-backed GET client with retries and a TTL response cache."""

    def __init__(
        self,
        timeout: float = Constants.REQUEST_TIMEOUT,
        retries: int = Constants.HTTP_RETRY_MAX,
        retry_base_delay: float = Constants.HTTP_RETRY_BASE_DELAY_SEC,
        cache_ttl: float = Constants.HTTP_CACHE_TTL_SEC,
    ):
        """Initialize the client.

        Args:
            timeout: Total request timeout in seconds.
            retries: Attempts per request before giving up.
            retry_base_delay: First backoff delay; doubles on each retry.
            cache_ttl: Seconds a cached response stays valid (0 disables caching).
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._retries = max(1, retries)
        self._retry_base_delay = retry_base_delay
        self._cache_ttl = cache_ttl
        self._cache: Dict[str, Tuple[HttpResult, float]] = {}
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": Constants.USER_AGENT},
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def clear_cache(self) -> None:
        """Drop all cached responses."""
        self._cache.clear()

    def _prune_cache(self, now: float) -> None:
        """Drop every expired entry."""
        expired = [key for key, (_, cached_at) in self._cache.items() if now - cached_at >= self._cache_ttl]
        for key in expired:
            del self._cache[key]

    def _cached(self, key: str) -> Optional[HttpResult]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        result, cached_at = entry
        if time.time() - cached_at >= self._cache_ttl:
            del self._cache[key]
            return None
        return result

    async def get(self, url: str, *, headers: Optional[Dict[str, str]] = None) -> HttpResult:
        """Perform a GET request with retries and caching.

        Args:
            url: Target URL.
            headers: Optional request headers.

        Returns:
            Tuple of (status_code, headers_dict, body). Status is 0 when every
            attempt failed at the transport level.
        """
        cache_key = _get_cache_key("GET", url, headers)
        safe_target = safe_url(url)

        cached = self._cached(cache_key)
        if cached is not None:
            if is_debug_enabled(logger):
                logger.debug("HTTP cache hit", extra=extra_context(
                    event="cache_hit", component="http_client", action="GET", target=safe_target
                ))
            return cached

        if self._session is None:
            await self.start()
        assert self._session is not None

        last_exception = None
        for attempt in range(self._retries):
            if attempt:
                await asyncio.sleep(self._retry_base_delay * (2 ** (attempt - 1)))
            with Timer() as t:
                try:
                    if is_debug_enabled(logger):
                        logger.debug("HTTP request", extra=extra_context(
                            event="http_request", component="http_client", action="GET",
                            target=safe_target, attempt=attempt + 1
                        ))
                    async with self._session.get(url, headers=headers) as response:
                        body = await response.read()
                        result = (response.status, dict(response.headers), body)
                except asyncio.TimeoutError:
                    last_exception = "timeout"
                    if is_debug_enabled(logger):
                        logger.debug("HTTP timeout", extra=extra_context(
                            event="http_exception", component="http_client", action="GET",
                            outcome="timeout", attempt=attempt + 1, target=safe_target
                        ))
                    continue
                except aiohttp.ClientError as exc:
                    last_exception = str(exc)
                    if is_debug_enabled(logger):
                        logger.debug("HTTP request exception", extra=extra_context(
                            event="http_exception", component="http_client", action="GET",
                            outcome="request_exception", attempt=attempt + 1, target=safe_target
                        ))
                    continue

            if is_debug_enabled(logger):
                logger.debug("HTTP response", extra=extra_context(
                    event="http_response", component="http_client", action="GET",
                    status_code=result[0], duration_ms=t.duration_ms(), target=safe_target
                ))
            if result[0] >= 500:
                last_exception = f"HTTP {result[0]}"
                continue
            if self._cache_ttl > 0:
                now = time.time()
                self._prune_cache(now)
                self._cache[cache_key] = (result, now)
            return result

        logger.debug(
            "Request to %s failed after %s attempts: %s", safe_target, self._retries, last_exception
        )
        return 0, {}, b""

    async def get_json(
        self, url: str, *, headers: Optional[Dict[str, str]] = None
    ) -> Tuple[int, Dict[str, str], Optional[Any]]:
        """Perform a GET request and parse a JSON body.

        Returns:
            Tuple of (status_code, headers_dict, parsed_json_or_none)
        """
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        status_code, response_headers, body = await self.get(url, headers=request_headers)
        if status_code == 200 and body:
            try:
                return status_code, response_headers, json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                if is_debug_enabled(logger):
                    logger.debug("JSON decode error", extra=extra_context(
                        event="parse", component="http_client", action="get_json",
                        outcome="json_decode_error", status_code=status_code, target=safe_url(url)
                    ))
        return status_code, response_headers, None

    async def __aenter__(self) -> "AsyncHttpClient":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
