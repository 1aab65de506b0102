"""SSRF-hardened HTTP retrieval of skill content."""

import asyncio
import base64
import binascii
import logging
import random
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from urllib.parse import unquote_to_bytes, urljoin

import httpx

from skilltrust import __version__
from skilltrust.exceptions import (
    FetchError,
    HttpStatusError,
    ResponseTooLargeError,
    TransientFetchError,
)
from skilltrust.fetcher.archive import extract_skill_from_zip
from skilltrust.fetcher.ssrf import Resolver, assert_url_allowed, resolve_host
from skilltrust.fetcher.urls import is_marketplace_download, normalize_skill_url

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
MAX_TEXT_BYTES = 2_000_000
MAX_ZIP_BYTES = 25_000_000
MAX_ERROR_BODY_BYTES = 8_000

DEFAULT_TIMEOUT_MS = 30_000
MARKETPLACE_TIMEOUT_MS = 45_000
MAX_BACKOFF_S = 30.0
MAX_JITTER_S = 0.25

DEFAULT_HEADERS = {
    "Accept": "text/plain,text/markdown,text/html;q=0.9,application/zip;q=0.8,*/*;q=0.7",
    "User-Agent": f"SkillTrust/{__version__}",
}

_DATA_URL = re.compile(r"^data:(?P<meta>[^,]*),(?P<data>.*)$", re.DOTALL | re.IGNORECASE)

Sleep = Callable[[float], Awaitable[None]]


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


def decode_data_url(url: str) -> bytes:
    """Decode an RFC 2397 ``data:`` URL to bytes."""
    match = _DATA_URL.match(url)
    if match is None:
        raise FetchError("Malformed data: URL")
    meta, data = match.group("meta"), match.group("data")
    if meta.lower().endswith(";base64"):
        try:
            return base64.b64decode(unquote_to_bytes(data), validate=True)
        except (binascii.Error, ValueError) as e:
            raise FetchError(f"Invalid base64 in data: URL: {e}") from e
    return unquote_to_bytes(data)


async def read_limited(response: httpx.Response, max_bytes: int) -> bytes:
    """Read a streamed body, enforcing the declared and actual size cap."""
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise ResponseTooLargeError(f"Response too large ({declared} bytes > {max_bytes} bytes)")

    chunks: list[bytes] = []
    total = 0
    async for chunk in response.aiter_bytes():
        total += len(chunk)
        if total > max_bytes:
            raise ResponseTooLargeError(f"Response too large (> {max_bytes} bytes)")
        chunks.append(chunk)
    return b"".join(chunks)


class SkillFetcher:
    """Fetch skill content from a URL with SSRF checks, size caps and retries.

    The transport, DNS resolver, sleep function and jitter source are
    injectable so tests can run without network access or real delays.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        resolver: Resolver = resolve_host,
        sleep: Sleep = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self._transport = transport
        self._resolver = resolver
        self._sleep = sleep
        self._jitter = jitter

    async def fetch(
        self,
        url: str,
        *,
        timeout_ms: int | None = None,
        retries: int = 2,
        retry_delay_ms: int = 750,
    ) -> str:
        """Return the skill text behind ``url``.

        ``timeout_ms`` bounds each attempt; ``None`` picks the source default
        and a value of zero or less disables the deadline.
        """
        source_url = normalize_skill_url(url)
        if timeout_ms is None:
            timeout_ms = MARKETPLACE_TIMEOUT_MS if is_marketplace_download(source_url) else DEFAULT_TIMEOUT_MS
        timeout_s = timeout_ms / 1000 if timeout_ms > 0 else None
        retries = max(0, retries)
        base_delay_s = max(0, retry_delay_ms) / 1000

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=timeout_s,
            follow_redirects=False,
        ) as client:
            for attempt in range(retries + 1):
                try:
                    return await self._attempt(client, source_url, timeout_s)
                except FetchError as e:
                    if attempt >= retries or not e.retryable:
                        raise
                    delay = e.retry_after if e.retry_after is not None else self.backoff(base_delay_s, attempt)
                    delay = min(MAX_BACKOFF_S, delay)
                    logger.info(
                        "Retrying %s in %.2fs (attempt %d of %d): %s",
                        source_url, delay, attempt + 1, retries, e,
                    )
                    await self._sleep(delay)
        raise FetchError(f"Failed to fetch skill content from {source_url}")

    def backoff(self, base_delay_s: float, attempt: int) -> float:
        """Exponential backoff with up to 250 ms of jitter, capped at 30 s."""
        return min(MAX_BACKOFF_S, base_delay_s * 2**attempt + self._jitter() * MAX_JITTER_S)

    async def _attempt(self, client: httpx.AsyncClient, url: str, timeout_s: float | None) -> str:
        try:
            async with asyncio.timeout(timeout_s):
                return await self._follow(client, url)
        except TimeoutError as e:
            raise TransientFetchError(f"Timed out fetching {url}") from e
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"Timed out fetching {url}: {e}") from e
        except httpx.TransportError as e:
            raise TransientFetchError(f"Network error fetching {url}: {e}") from e

    async def _follow(self, client: httpx.AsyncClient, url: str) -> str:
        current = url
        for hop in range(MAX_REDIRECTS + 1):
            await assert_url_allowed(current, self._resolver)
            if current[:5].lower() == "data:":
                data = decode_data_url(current)
                if len(data) > MAX_TEXT_BYTES:
                    raise ResponseTooLargeError(f"data: URL too large (> {MAX_TEXT_BYTES} bytes)")
                return data.decode("utf-8", errors="replace")

            async with client.stream("GET", current, headers=DEFAULT_HEADERS) as response:
                location = response.headers.get("location")
                if 300 <= response.status_code < 400 and location:
                    if hop == MAX_REDIRECTS:
                        raise FetchError(f"Too many redirects (> {MAX_REDIRECTS})")
                    current = urljoin(current, location)
                    continue
                return await self._read(response, current)

        raise FetchError(f"Too many redirects (> {MAX_REDIRECTS})")

    async def _read(self, response: httpx.Response, url: str) -> str:
        if not response.is_success:
            snippet = ""
            try:
                body = await read_limited(response, MAX_ERROR_BODY_BYTES)
                snippet = " ".join(body.decode("utf-8", errors="replace").split())[:200]
            except (ResponseTooLargeError, httpx.HTTPError):
                snippet = ""
            message = f"Failed to fetch skill from {url}: {response.status_code} {response.reason_phrase}"
            if snippet:
                message += f": {snippet}"
            raise HttpStatusError(
                message,
                status_code=response.status_code,
                retry_after=parse_retry_after(response.headers.get("retry-after")),
            )

        content_type = response.headers.get("content-type", "").lower()
        if "application/zip" in content_type or is_marketplace_download(url):
            data = await read_limited(response, MAX_ZIP_BYTES)
            return extract_skill_from_zip(data).content

        data = await read_limited(response, MAX_TEXT_BYTES)
        return data.decode("utf-8", errors="replace")
