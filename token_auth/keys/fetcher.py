"""
Public key fetchers with in-memory TTL caching.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.config import get_settings
from shared.errors import KeyFetchError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.validators import is_url


class KeyFetcher(Protocol):
    """Anything that can produce the current ``{kid: key}`` map."""

    async def fetch_public_keys(self) -> Dict[str, Any]:
        ...


class _CachingKeyFetcher:
    """Shared refresh/caching machinery for HTTP key sources."""

    source = "http"
    error_prefix = "Error fetching public keys"

    def __init__(
        self,
        url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        proxy: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if not is_url(url):
            raise ValidationError(
                "The provided public client certificate URL is an invalid URL.",
                details={"url": url},
            )
        settings = get_settings()
        self.url = url
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.proxy = proxy if proxy is not None else settings.http_proxy
        self.clock = clock
        self.metrics = metrics or get_metrics_collector()
        self.logger = get_logger(f"keys.{self.source}")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.key_fetch_failure_threshold,
            recovery_timeout=settings.key_fetch_recovery_timeout,
            name=f"{self.source}:{url}",
            clock=clock,
        )
        self._http_client = http_client

        self._public_keys: Optional[Dict[str, Any]] = None
        self._expires_at: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None

    async def fetch_public_keys(self) -> Dict[str, Any]:
        """Return cached keys, refreshing them first if they are stale."""
        if not self._should_refresh():
            return self._public_keys

        if self._lock is None:
            # Bound to the running loop on first use
            self._lock = asyncio.Lock()
        async with self._lock:
            # Another caller may have refreshed while we waited.
            if not self._should_refresh():
                return self._public_keys
            return await self._refresh()

    def _should_refresh(self) -> bool:
        if self._public_keys is None or self._expires_at is None:
            return True
        return self.clock() >= self._expires_at

    async def _refresh(self) -> Dict[str, Any]:
        try:
            with self.metrics.time_key_fetch(self.source):
                keys, max_age = await self.circuit_breaker.call(self._fetch)
        except CircuitBreakerOpenException as exc:
            self.metrics.record_key_fetch(self.source, "circuit_open")
            self.logger.error("Key source circuit open", url=self.url)
            raise KeyFetchError(f"{self.error_prefix}: {exc}", details={"url": self.url}) from exc
        except KeyFetchError as exc:
            self.metrics.record_key_fetch(self.source, "error")
            self.logger.error("Failed to fetch public keys", url=self.url, error=exc.message)
            raise

        # Swap in the complete map only once the fetch succeeded
        self._expires_at = self.clock() + (max_age or 0)
        self._public_keys = keys
        self.metrics.record_key_fetch(self.source, "success")
        self.logger.info(
            "Public keys refreshed",
            url=self.url,
            key_count=len(keys),
            max_age=max_age,
        )
        return keys

    async def _fetch(self) -> Tuple[Dict[str, Any], Optional[float]]:
        try:
            response = await self._get()
        except httpx.HTTPError as exc:
            raise KeyFetchError(
                f"{self.error_prefix}: {exc}",
                details={"url": self.url},
            ) from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error or not isinstance(data, dict) or "error" in data:
            raise KeyFetchError(
                self._error_message(response, data),
                details={"url": self.url, "status_code": response.status_code},
            )

        return self._parse_keys(data), self._max_age(response)

    async def _get(self) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(self.url)
        async with httpx.AsyncClient(timeout=self.timeout, proxy=self.proxy) as client:
            return await client.get(self.url)

    def _error_message(self, response: httpx.Response, data: Any) -> str:
        message = f"{self.error_prefix}: "
        if isinstance(data, dict) and data.get("error"):
            message += f"{data['error']}"
            if data.get("error_description"):
                message += f" ({data['error_description']})"
        else:
            message += response.text
        return message

    def _parse_keys(self, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def _max_age(self, response: httpx.Response) -> Optional[float]:
        raise NotImplementedError

    def clear_cache(self):
        """Drop cached keys so the next lookup refetches."""
        self._public_keys = None
        self._expires_at = None
        self.logger.info("Public key cache cleared", url=self.url)


class UrlKeyFetcher(_CachingKeyFetcher):
    """Polls a URL serving a flat ``{kid: PEM certificate}`` map."""

    source = "url"
    error_prefix = "Error fetching public keys for Google certs"

    def _parse_keys(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return dict(data)

    def _max_age(self, response: httpx.Response) -> Optional[float]:
        # No max-age means the keys are stale on the next lookup
        return parse_max_age(response.headers.get("cache-control"))


class JwksKeyFetcher(_CachingKeyFetcher):
    """Reads keys from a JWKS document and caches them for a fixed TTL."""

    source = "jwks"
    error_prefix = "Error fetching Json Web Keys"

    def __init__(self, url: str, *, cache_ttl: Optional[float] = None, **kwargs) -> None:
        super().__init__(url, **kwargs)
        self.cache_ttl = cache_ttl if cache_ttl is not None else get_settings().jwks_cache_ttl

    def _parse_keys(self, data: Dict[str, Any]) -> Dict[str, Any]:
        keys = data.get("keys")
        if not isinstance(keys, list):
            raise KeyFetchError(
                f"{self.error_prefix}: response is missing the 'keys' array",
                details={"url": self.url},
            )
        return {
            key["kid"]: key
            for key in keys
            if isinstance(key, dict) and isinstance(key.get("kid"), str) and key["kid"]
        }

    def _max_age(self, response: httpx.Response) -> Optional[float]:
        return self.cache_ttl


def parse_max_age(cache_control: Optional[str]) -> Optional[float]:
    """Extract ``max-age`` (seconds) from a Cache-Control header value."""
    if not cache_control:
        return None
    for part in cache_control.split(","):
        directive, _, value = part.strip().partition("=")
        if directive.strip().lower() == "max-age":
            try:
                return float(int(value.strip().strip('"')))
            except ValueError:
                return None
    return None
