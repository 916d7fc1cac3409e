"""Shared HTTP and response-cache layer for the upstream clients.

One ApiClient (and one aiohttp session) is shared by every client so the
connection pool and the TTL cache are shared too.

Error Handling Strategy:
    - Non-2xx responses raise ApiError carrying the status code
    - Timeouts and connection failures raise ApiError wrapping the cause
    - SSL certificate errors are retried once without verification
    - Callers (the clients) decide how to fall back
"""

import asyncio
import logging
import ssl
import time
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp
import certifi

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_AGENT = "CyberPress/1.0 (+https://github.com/cyberpress)"

# Browser-like User-Agent; some feed hosts block non-browser agents
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class ApiError(Exception):
    """Transport-level failure talking to an upstream boundary."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


def create_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """SSL context using the certifi bundle, or with verification disabled."""
    if verify:
        return ssl.create_default_context(cafile=certifi.where())
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


class ApiClient:
    """Thin async JSON/text client with a TTL response cache.

    Example:
        >>> async with ApiClient("https://api.coingecko.com/api/v3") as api:
        ...     coins = await api.get("/coins/markets", {"vs_currency": "usd"})
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: int = 30,
        cache_ttl: int = 300,
        max_connections: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Create a client. The aiohttp session is opened lazily.

        Args:
            base_url: Prefix for relative endpoints
            headers: Default headers sent with every request
            timeout: Total request timeout in seconds
            cache_ttl: Default TTL for get_cached in seconds
            max_connections: Connection pool size
            clock: Monotonic clock used for cache expiry
        """
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json", "User-Agent": USER_AGENT, **(headers or {})}
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.max_connections = max_connections
        self._clock = clock
        self._session: aiohttp.ClientSession | None = None
        self._cache: dict[str, tuple[Any, float]] = {}

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")) or not self.base_url:
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.max_connections)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        as_text: bool = False,
        verify_ssl: bool = True,
    ) -> Any:
        url = self._url(endpoint)
        try:
            async with self._get_session().request(
                method,
                url,
                params=params,
                json=json_body,
                headers={**self.headers, **(headers or {})},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                ssl=create_ssl_context(verify_ssl),
            ) as resp:
                if resp.status >= 300:
                    raise ApiError(f"Request failed: HTTP {resp.status} {resp.reason}", resp.status)
                if as_text:
                    return await resp.text()
                return await resp.json(content_type=None)
        except aiohttp.ClientSSLError as e:
            if verify_ssl:
                logger.debug("SSL error, retrying without verification | url=%s", url)
                return await self._request(
                    method, endpoint, params=params, json_body=json_body,
                    headers=headers, as_text=as_text, verify_ssl=False,
                )
            raise ApiError(f"SSL verification failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ApiError(f"Request timed out after {self.timeout}s: {url}") from e
        except aiohttp.ClientError as e:
            raise ApiError(f"Network error: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {url}: {e}") from e

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET and decode a JSON response."""
        return await self._request("GET", endpoint, params=params, headers=headers)

    async def get_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        """GET and return the raw body (feeds, HTML)."""
        return await self._request("GET", url, headers=headers, as_text=True)

    async def post(
        self,
        endpoint: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """POST a JSON body and decode the JSON response."""
        return await self._request("POST", endpoint, json_body=data, headers=headers)

    async def get_cached(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return a cached value or fetch, store and return a fresh one.

        Failures are not cached.
        """
        cached = self._cache.get(key)
        now = self._clock()
        if cached and now < cached[1]:
            logger.debug("HTTP cache hit | key=%s", key)
            return cached[0]

        data = await fetcher()
        self._cache[key] = (data, now + (self.cache_ttl if ttl is None else ttl))
        return data

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
