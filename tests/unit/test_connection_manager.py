"""Unit tests for the HTTP session manager."""

import httpx
import pytest

from src.utils.connection_manager import ConnectionPoolMetrics, HTTPSessionManager


class TestConnectionPoolMetrics:
    """Test request metrics."""

    def test_record_request(self):
        metrics = ConnectionPoolMetrics()

        metrics.record_request_started()
        assert metrics.active_requests == 1

        metrics.record_request_finished(12.0, 200)
        metrics.record_request_started()
        metrics.record_request_finished(30.0, 502)

        assert metrics.total_requests == 2
        assert metrics.active_requests == 0
        assert metrics.failed_requests == 1
        assert metrics.status_counts == {200: 1, 502: 1}
        assert metrics.get_avg_request_time() == 21.0

    def test_empty_latency(self):
        metrics = ConnectionPoolMetrics()

        assert metrics.get_avg_request_time() == 0.0
        assert metrics.get_p95_request_time() == 0.0

    def test_latency_window(self):
        metrics = ConnectionPoolMetrics()
        for i in range(1100):
            metrics.record_request_finished(float(i), 200)

        assert len(metrics.request_time_ms) == 1000
        assert metrics.request_time_ms[0] == 100.0


class TestHTTPSessionManager:
    """Test the pooled HTTP client wrapper."""

    @pytest.fixture
    def seen(self):
        return []

    @pytest.fixture
    def manager(self, seen):
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/missing":
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"ok": True})

        return HTTPSessionManager("https://api.test/", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_request_uses_base_url(self, manager, seen):
        response = await manager.request("GET", "/healthz")

        assert response.json() == {"ok": True}
        assert str(seen[0].url) == "https://api.test/healthz"
        assert manager.metrics.status_counts == {200: 1}

    @pytest.mark.asyncio
    async def test_request_raises_for_status(self, manager):
        with pytest.raises(httpx.HTTPStatusError):
            await manager.request("GET", "/missing")

        assert manager.metrics.failed_requests == 1
        assert manager.metrics.active_requests == 0

    @pytest.mark.asyncio
    async def test_headers_before_and_after_initialize(self, manager, seen):
        manager.set_header("Authorization", "Bearer a")
        await manager.request("GET", "/one")
        manager.set_header("Authorization", "Bearer b")
        manager.set_header("Cookie", "takaro-domain=d-1")
        await manager.request("GET", "/two")
        manager.set_header("Cookie", None)
        await manager.request("GET", "/three")

        assert seen[0].headers["Authorization"] == "Bearer a"
        assert seen[1].headers["Authorization"] == "Bearer b"
        assert seen[1].headers["Cookie"] == "takaro-domain=d-1"
        assert "Cookie" not in seen[2].headers

    @pytest.mark.asyncio
    async def test_transport_error_counted(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        manager = HTTPSessionManager("https://api.test", transport=httpx.MockTransport(handler))

        with pytest.raises(httpx.ConnectError):
            await manager.request("GET", "/")

        assert manager.metrics.connection_errors == 1

    @pytest.mark.asyncio
    async def test_health_check(self, manager):
        health = await manager.health_check()

        assert health["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_close(self, manager):
        await manager.request("GET", "/")
        await manager.close()

        assert manager._client is None
