"""
HTTP session manager for the upstream Takaro API.

Keeps one pooled httpx.AsyncClient per upstream base URL so that
every API call reuses keep-alive connections.

Key features:
- Lazy client creation guarded by an asyncio lock
- Persistent default headers (bearer token, selected domain)
- Request latency and error metrics
- Health check against the upstream base URL
"""

import asyncio
import statistics
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ConnectionPoolMetrics:
    """Metrics for monitoring upstream request performance."""

    total_requests: int = 0
    active_requests: int = 0
    failed_requests: int = 0
    connection_errors: int = 0
    status_counts: Dict[int, int] = field(default_factory=dict)
    request_time_ms: List[float] = field(default_factory=list)

    def record_request_started(self) -> None:
        self.total_requests += 1
        self.active_requests += 1

    def record_request_finished(self, elapsed_ms: float, status_code: Optional[int]) -> None:
        """Record a completed request (status_code is None on transport errors)."""
        self.active_requests = max(0, self.active_requests - 1)
        if status_code is not None:
            self.status_counts[status_code] = self.status_counts.get(status_code, 0) + 1
            if status_code >= 400:
                self.failed_requests += 1
        self.request_time_ms.append(elapsed_ms)
        if len(self.request_time_ms) > 1000:  # Keep last 1000 samples
            self.request_time_ms = self.request_time_ms[-1000:]

    def record_connection_error(self) -> None:
        self.connection_errors += 1
        self.failed_requests += 1

    def get_avg_request_time(self) -> float:
        if not self.request_time_ms:
            return 0.0
        return statistics.mean(self.request_time_ms)

    def get_p95_request_time(self) -> float:
        if len(self.request_time_ms) < 2:
            return self.get_avg_request_time()
        return statistics.quantiles(self.request_time_ms, n=20)[18]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "active_requests": self.active_requests,
            "failed_requests": self.failed_requests,
            "connection_errors": self.connection_errors,
            "status_counts": dict(self.status_counts),
            "avg_request_time_ms": round(self.get_avg_request_time(), 3),
            "p95_request_time_ms": round(self.get_p95_request_time(), 3),
        }


class HTTPSessionManager:
    """Manages a pooled HTTP client bound to one upstream base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        keepalive_expiry: float = 30.0,
        retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Upstream API root (e.g. https://api.takaro.io)
            timeout: Per-request timeout in seconds
            transport: Custom transport (httpx.MockTransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.headers: Dict[str, str] = {"Accept": "application/json"}
        self.metrics = ConnectionPoolMetrics()

        self._client: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the HTTP client if it does not exist yet."""
        async with self._lock:
            if self._client is not None:
                return

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                limits=self._limits,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport or httpx.AsyncHTTPTransport(retries=self.retries),
            )
            logger.info("HTTP client created", base_url=self.base_url)

    def set_header(self, name: str, value: Optional[str]) -> None:
        """Set (or remove when value is None) a header sent with every request."""
        if value is None:
            self.headers.pop(name, None)
            if self._client is not None:
                self._client.headers.pop(name, None)
            return

        self.headers[name] = value
        if self._client is not None:
            self._client.headers[name] = value

    @asynccontextmanager
    async def session(self):
        """Get the shared HTTP client."""
        if self._client is None:
            await self.initialize()

        try:
            yield self._client
        except httpx.TransportError as e:
            self.metrics.record_connection_error()
            logger.warning("HTTP connection error", base_url=self.base_url, error=str(e))
            raise

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and raise httpx.HTTPStatusError on 4xx/5xx.

        Args:
            method: HTTP method
            path: Path relative to base_url
            **kwargs: Passed through to httpx (json, params, ...)
        """
        start = time.perf_counter()
        status_code: Optional[int] = None
        self.metrics.record_request_started()
        try:
            async with self.session() as client:
                response = await client.request(method, path, **kwargs)
                status_code = response.status_code
                response.raise_for_status()
                return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_request_finished(elapsed_ms, status_code)
            logger.debug(
                "Upstream request",
                method=method,
                path=path,
                status_code=status_code,
                elapsed_ms=round(elapsed_ms, 3),
            )

    async def health_check(self) -> Dict[str, Any]:
        """Check that the upstream API answers."""
        try:
            async with self.session() as client:
                response = await client.get("/healthz")
                response.raise_for_status()

            return {"status": "healthy", **self.metrics.to_dict()}
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "error_count": self.metrics.connection_errors,
            }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")
