"""
Async HTTP client used for every playlist, segment and key request.

Transient failures (connection errors, timeouts, 5xx responses) are retried with
exponential backoff; any other non-2xx response surfaces as a NetworkError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from yarl import URL

from livestream_dl.exceptions import NetworkError
from livestream_dl.models.config import CaptureConfig
from livestream_dl.models.segment import RemoteResource
from livestream_dl.utils.url import query_pairs

from .cookies import NetscapeCookie, load_cookies

log = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Body of a successful response and the URL it was finally served from."""

    data: bytes
    url: str


def is_transient_error(exc: BaseException) -> bool:
    """Decides whether a failed request is worth retrying."""
    if isinstance(exc, NetworkError):
        return exc.is_transient
    return isinstance(
        exc,
        (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError),
    )


class HttpClient:
    """
    Thin async wrapper around a shared aiohttp session.

    Features:
    - Bounded total timeout per request
    - Exponential backoff between retries with explicit min/max delay
    - Optional cookies loaded from a Netscape cookie file
    - Optional query pairs appended to every request
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 10,
        retry_min_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        max_connections: int = 20,
        cookies: Optional[List[NetscapeCookie]] = None,
        extra_query: Optional[List[Tuple[str, str]]] = None,
        user_agent: Optional[str] = None,
    ):
        """
        Initializes the client.

        Args:
            timeout: Total timeout in seconds for a single request attempt.
            max_retries: How many times a transient failure is retried.
            retry_min_delay: Lower bound in seconds for the delay between attempts.
            retry_max_delay: Upper bound in seconds for the delay between attempts.
            max_connections: The number of concurrent downloads, used to tune the pool.
            cookies: Cookies to send with matching requests.
            extra_query: Query pairs appended to every request URL.
            user_agent: Value of the User-Agent header.
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_min_delay = retry_min_delay
        self.retry_max_delay = retry_max_delay
        self.max_connections = max_connections
        self.cookies = cookies or []
        self.extra_query = extra_query or None
        self.user_agent = user_agent

        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: CaptureConfig) -> "HttpClient":
        """Builds a client from the capture configuration."""
        return cls(
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_min_delay=config.retry_min_delay,
            retry_max_delay=config.retry_max_delay,
            max_connections=config.max_concurrent_downloads,
            cookies=load_cookies(config.cookies) if config.cookies else None,
            extra_query=query_pairs(config.url) if config.copy_query else None,
            user_agent=config.user_agent,
        )

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            # unsafe=True keeps cookies for hosts given as IP addresses
            jar = aiohttp.CookieJar(unsafe=True)
            for cookie in self.cookies:
                jar.update_cookies({cookie.name: cookie.value}, response_url=URL(cookie.url))

            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            headers = {"Accept-Encoding": "gzip, deflate"}
            if self.user_agent:
                headers["User-Agent"] = self.user_agent
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=jar,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            log.debug(f"Created HTTP session with connection limit {self.max_connections * 2}")
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HttpClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_min_delay,
                min=self.retry_min_delay,
                max=self.retry_max_delay,
            ),
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(log, logging.DEBUG),
            reraise=True,
        )

    async def _get_once(self, url: str, headers: Dict[str, str]) -> FetchResult:
        session = await self._initialize_session()
        params = None
        if self.extra_query:
            existing = set(query_pairs(url))
            params = [pair for pair in self.extra_query if pair not in existing] or None
        async with session.get(
            url, headers=headers, params=params, allow_redirects=True
        ) as response:
            final_url = str(response.url)
            if not 200 <= response.status < 300:
                raise NetworkError(response.status, final_url)
            data = await response.read()
        return FetchResult(data=data, url=final_url)

    async def get(self, url: str, headers: Optional[Dict[str, Any]] = None) -> FetchResult:
        """
        Performs a GET request, retrying transient failures.

        Returns:
            The response body and the effective (possibly redirected) URL.

        Raises:
            NetworkError: If the final response is not 2xx.
        """
        request_headers = dict(headers or {})
        async for attempt in self._retrying():
            with attempt:
                result = await self._get_once(url, request_headers)
        return result

    async def fetch(self, resource: RemoteResource) -> FetchResult:
        """Fetches a remote resource, sending a Range header when it has a byte range."""
        headers = {}
        if range_header := resource.range_header():
            headers[aiohttp.hdrs.RANGE] = range_header
        return await self.get(resource.url, headers=headers)
