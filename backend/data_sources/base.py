"""
Protocol Adapter Base
Shared HTTP, retry, classification and caching behaviour for bridge protocol clients.
"""

import asyncio
import logging
import re
import time
from typing import Any, Callable, Dict, Optional

import httpx

from infrastructure.api_metrics import APIMetricsTracker, api_metrics
from infrastructure.ttl_store import InMemoryTTLStore, TTLStore
from services.errors import AnalysisError
from services.score_normalizer import ScoreNormalizer, get_score_normalizer

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
UNSUPPORTED_STATUS = {400, 404, 422}


def is_valid_address(address: Any) -> bool:
    return isinstance(address, str) and bool(ADDRESS_PATTERN.match(address))


class ProtocolAdapter:
    """
    Base class for a bridge protocol data source.

    Subclasses set `service`/`label` and implement `fetch(address)`.

    Provides:
    - Lazy httpx.AsyncClient with a per-request timeout
    - Up to `max_retries` attempts with linear backoff for transient failures
    - Classification of failures into AnalysisError codes
    - Address-keyed read-through cache on an injectable TTLStore
    """

    service = "protocol"
    label = "Protocol"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        cache_ttl: float = 300,
        store: Optional[TTLStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[APIMetricsTracker] = None,
        normalizer: Optional[ScoreNormalizer] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.cache_ttl = cache_ttl
        self.store = store or InMemoryTTLStore()
        self.metrics = metrics or api_metrics
        self.normalizer = normalizer or get_score_normalizer()
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self.fetch_count = 0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ------------------------------------------
    # Errors
    # ------------------------------------------

    def error(
        self,
        code: str,
        message: str,
        severity: str = "medium",
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ) -> AnalysisError:
        prefix = f"{self.service.upper()}_"
        if not code.startswith(prefix) and code != "INVALID_ADDRESS":
            code = prefix + code
        return AnalysisError(
            code=code,
            message=message,
            service=self.service,
            severity=severity,
            retryable=retryable,
            context=context,
        )

    def validate_address(self, address: Any) -> str:
        if not is_valid_address(address):
            raise self.error(
                "INVALID_ADDRESS",
                f"Invalid Ethereum address: {address}",
                severity="high",
                retryable=False,
                context={"address": address if isinstance(address, str) else None},
            )
        return address

    # ------------------------------------------
    # HTTP
    # ------------------------------------------

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """GET with retries; returns decoded JSON or raises AnalysisError"""
        client = await self._get_client()
        last_error: Optional[AnalysisError] = None

        for attempt in range(1, self.max_retries + 1):
            started = time.perf_counter()
            try:
                response = await client.get(endpoint, params=params)
            except httpx.TimeoutException as e:
                self.metrics.record_call(self.service, endpoint, "timeout", time.perf_counter() - started, attempt, str(e))
                last_error = self.error(
                    "TIMEOUT",
                    f"{self.label} request timed out after {self.timeout}s",
                    retryable=True,
                    context={"endpoint": endpoint, "attempt": attempt},
                )
            except httpx.TransportError as e:
                self.metrics.record_call(self.service, endpoint, "error", time.perf_counter() - started, attempt, str(e))
                last_error = self.error(
                    "NETWORK_ERROR",
                    f"{self.label} network error: {e}",
                    retryable=True,
                    context={"endpoint": endpoint, "attempt": attempt},
                )
            else:
                elapsed = time.perf_counter() - started
                status = response.status_code

                if status in UNSUPPORTED_STATUS:
                    self.metrics.record_call(self.service, endpoint, "error", elapsed, attempt, response.text[:200], status)
                    raise self.error(
                        "ADDRESS_UNSUPPORTED",
                        f"{self.label} rejected the request (HTTP {status})",
                        severity="medium",
                        retryable=False,
                        context={"endpoint": endpoint, "statusCode": status},
                    )

                if status in RETRYABLE_STATUS or status >= 500:
                    rate_limited = status == 429
                    self.metrics.record_call(
                        self.service, endpoint, "rate_limited" if rate_limited else "error",
                        elapsed, attempt, f"HTTP {status}", status,
                    )
                    last_error = self.error(
                        "RATE_LIMITED" if rate_limited else "UPSTREAM_ERROR",
                        f"{self.label} API error: HTTP {status}",
                        retryable=True,
                        context={"endpoint": endpoint, "statusCode": status, "attempt": attempt},
                    )
                elif status >= 400:
                    self.metrics.record_call(self.service, endpoint, "error", elapsed, attempt, f"HTTP {status}", status)
                    raise self.error(
                        "API_ERROR",
                        f"{self.label} API error: HTTP {status}",
                        retryable=False,
                        context={"endpoint": endpoint, "statusCode": status},
                    )
                else:
                    try:
                        payload = response.json()
                    except ValueError:
                        self.metrics.record_call(self.service, endpoint, "error", elapsed, attempt, "Invalid JSON", status)
                        raise self.error(
                            "MALFORMED_RESPONSE",
                            f"{self.label} returned a non-JSON body",
                            retryable=False,
                            context={"endpoint": endpoint},
                        )
                    self.metrics.record_call(self.service, endpoint, "success", elapsed, attempt, status_code=status)
                    return payload

            if attempt < self.max_retries:
                delay = self.retry_delay * attempt
                logger.warning(
                    f"[{self.label}] {last_error.code} on {endpoint} "
                    f"(attempt {attempt}/{self.max_retries}), retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.warning(f"[{self.label}] {endpoint} failed after {self.max_retries} attempts: {last_error.message}")
        raise last_error

    # ------------------------------------------
    # Cache
    # ------------------------------------------

    def cache_key(self, kind: str, address: str) -> str:
        return f"{self.service}:{kind}:{address.lower()}"

    async def cached(self, kind: str, address: str) -> Optional[Any]:
        return await self.store.get(self.cache_key(kind, address))

    async def remember(self, kind: str, address: str, value: Any, ttl: Optional[float] = None):
        await self.store.set(self.cache_key(kind, address), value, ttl if ttl is not None else self.cache_ttl)

    async def fetch(self, address: str):
        raise NotImplementedError
