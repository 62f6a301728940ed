"""
CMS Source Adapter - Keyword search against "videolist" style provider APIs.

Most providers expose the same JSON search endpoint::

    GET {api}?ac=videolist&wd=<keyword>
    → {"code": 1, "list": [{"vod_id": ..., "vod_name": ..., "type_name": ...,
                            "vod_play_url": "第1集$url#第2集$url$$$...", ...}]}

Provides for each source:
- Rate limiting (token bucket, one limiter per source)
- Circuit breaker (one per source)
- Retry on 429 / 5xx / connection errors, honouring Retry-After
- Mapping of provider records to RawResultItem

Unlike a general API client, every failure is raised as a SourceError. The
fan-out coordinator turns it into "zero results from this source".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx
from typing_extensions import Self

from media_search.domain.entities import RawResultItem, SourceDescriptor
from media_search.shared.async_utils import CircuitBreaker, RateLimiter, Sleeper
from media_search.shared.exceptions import (
    SourceError,
    SourceResponseError,
    SourceTimeoutError,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

SEARCH_PARAMS = {"ac": "videolist"}
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
}
PLAY_GROUP_SEPARATOR = "$$$"
EPISODE_SEPARATOR = "#"


def parse_episodes(play_url: Any) -> list[str]:
    """
    Extract episode URLs from a ``vod_play_url`` field.

    Groups are separated by ``$$$``; the first group carrying m3u8 links is
    preferred. Each episode is ``label$url``.
    """
    if not isinstance(play_url, str) or not play_url.strip():
        return []
    groups = [g for g in play_url.split(PLAY_GROUP_SEPARATOR) if g.strip()]
    if not groups:
        return []
    chosen = next((g for g in groups if ".m3u8" in g), groups[0])
    episodes: list[str] = []
    for entry in chosen.split(EPISODE_SEPARATOR):
        entry = entry.strip()
        if not entry:
            continue
        _, _, url = entry.rpartition("$")
        episodes.append(url or entry)
    return episodes


def map_vod_record(record: dict[str, Any], source: SourceDescriptor) -> RawResultItem | None:
    """Map one provider record; records without a title are dropped."""
    title = str(record.get("vod_name") or "").strip()
    if not title:
        return None
    data: dict[str, Any] = {
        "title": title,
        "type_name": record.get("type_name"),
        "episodes": parse_episodes(record.get("vod_play_url")),
        "id": str(record.get("vod_id", "")),
        "poster": record.get("vod_pic") or "",
        "year": str(record.get("vod_year") or "").strip() or "unknown",
        "description": record.get("vod_content") or "",
        "remarks": record.get("vod_remarks") or "",
    }
    if record.get("vod_douban_id"):
        data["douban_id"] = record["vod_douban_id"]
    if isinstance(record.get("type"), str):
        data["type"] = record["type"]
    return RawResultItem.from_dict(data, source=source.key, source_name=source.label)


class CmsSourceAdapter:
    """
    SourceAdapter for CMS-style provider APIs.

    Example:
        async with CmsSourceAdapter(timeout=8.0) as adapter:
            items = await adapter.search(source, "电影A")
    """

    _MAX_RETRIES: int = 1

    def __init__(
        self,
        timeout: float = 8.0,
        rate: float = 5.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        limiter_factory: Callable[[], RateLimiter] | None = None,
        breaker_factory: Callable[[str], CircuitBreaker] | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            timeout: Per-request timeout in seconds
            rate: Requests per second allowed against one source
            headers: Default headers (defaults to a browser-like UA)
            client: Pre-built httpx client (tests inject a MockTransport)
            limiter_factory: Builds the rate limiter of a new source
            breaker_factory: Builds the circuit breaker of a new source
            sleep: Awaitable used for retry backoff (tests pass a recorder)
        """
        self._timeout = timeout
        self._sleep = sleep or asyncio.sleep
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=headers or DEFAULT_HEADERS,
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=50,
                max_keepalive_connections=20,
                keepalive_expiry=30.0,
            ),
        )
        self._limiter_factory = limiter_factory or (lambda: RateLimiter(rate=rate, per=1.0))
        self._breaker_factory = breaker_factory or (
            lambda key: CircuitBreaker(name=key, failure_threshold=5, recovery_timeout=60.0)
        )
        self._limiters: dict[str, RateLimiter] = {}
        self._breakers: dict[str, CircuitBreaker] = {}

    def _limiter(self, key: str) -> RateLimiter:
        if key not in self._limiters:
            self._limiters[key] = self._limiter_factory()
        return self._limiters[key]

    def _breaker(self, key: str) -> CircuitBreaker:
        if key not in self._breakers:
            self._breakers[key] = self._breaker_factory(key)
        return self._breakers[key]

    async def _fetch(self, source: SourceDescriptor, keyword: str) -> dict[str, Any]:
        """One HTTP round-trip, raising SourceError subclasses."""
        await self._limiter(source.key).acquire()
        async with self._breaker(source.key):
            try:
                response = await self._client.get(
                    source.api,
                    params={**SEARCH_PARAMS, "wd": keyword},
                    timeout=self._timeout,
                )
            except httpx.TimeoutException as e:
                raise SourceTimeoutError(source.key, self._timeout) from e
            except httpx.RequestError as e:
                raise SourceError(f"{source.key}: request failed: {e}", source_key=source.key) from e

            if response.status_code == 429:
                raise SourceResponseError(
                    source.key,
                    "rate limited",
                    status_code=429,
                    retry_after=self._get_retry_after(response),
                )
            if response.status_code != 200:
                raise SourceResponseError(
                    source.key,
                    response.reason_phrase or "unexpected status",
                    status_code=response.status_code,
                )
            try:
                payload = response.json()
            except ValueError as e:
                raise SourceResponseError(source.key, "malformed JSON payload") from e

        if not isinstance(payload, dict):
            raise SourceResponseError(source.key, "payload is not an object")
        return payload

    async def search(self, source: SourceDescriptor, keyword: str) -> list[RawResultItem]:
        """Search one source for ``keyword``."""
        for attempt in range(self._MAX_RETRIES + 1):
            try:
                payload = await self._fetch(source, keyword)
                break
            except SourceError as e:
                if attempt < self._MAX_RETRIES and is_retryable_error(e) and not isinstance(e, SourceTimeoutError):
                    delay = self._backoff(e, attempt)
                    logger.warning(
                        f"{source.key}: retry {attempt + 1}/{self._MAX_RETRIES} in {delay:.1f}s after {e}"
                    )
                    await self._sleep(delay)
                    continue
                raise

        records = payload.get("list") or []
        if not isinstance(records, list):
            raise SourceResponseError(source.key, "'list' is not an array")

        items = [
            item
            for item in (map_vod_record(r, source) for r in records if isinstance(r, dict))
            if item is not None
        ]
        logger.debug(f"{source.key}: {len(items)} items for {keyword!r}")
        return items

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> float | None:
        """Seconds from a numeric Retry-After header, None when absent or unparsable."""
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return max(float(value), 0.0)
        except ValueError:
            return None

    @staticmethod
    def _backoff(error: SourceError, attempt: int) -> float:
        """Retry-After when the source sent one, exponential backoff otherwise."""
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return retry_after
        return float(2 ** (attempt + 1))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
