import json

import httpx
import pytest
import pytest_asyncio

from hostwatch.exceptions import BackendUnavailable, ProbeBackendError
from hostwatch.models import Credential
from hostwatch.probes import HttpProbeClient


@pytest.fixture
def credential():
    return Credential(host="web-01", port=22, username="admin", password="s3cret")


def make_client(handler) -> HttpProbeClient:
    return HttpProbeClient(
        "http://backend.test/", timeout=1.0, transport=httpx.MockTransport(handler)
    )


@pytest_asyncio.fixture
async def backend(backend_transport):
    client = HttpProbeClient("http://backend.test", timeout=1.0, transport=backend_transport)
    yield client
    await client.aclose()


class TestHttpProbeClient:
    @pytest.mark.asyncio
    async def test_health_check(self, backend):
        assert await backend.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self, unreachable_transport):
        client = HttpProbeClient("http://backend.test", transport=unreachable_transport)
        assert await client.health_check() is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_health_check_error_status_counts_as_reachable(self):
        client = make_client(lambda request: httpx.Response(503))
        assert await client.health_check() is True
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_success(self, backend, credential):
        result = await backend.test_connection(credential)
        assert result.success
        assert result.response_time_ms == 42

    @pytest.mark.asyncio
    async def test_connection_failure_kind(self, backend):
        down = Credential(host="down.example.com", port=22, username="u", password="p")
        result = await backend.test_connection(down)
        assert not result.success
        assert result.error == "Connection refused"
        assert result.error_kind == "refused"

    @pytest.mark.asyncio
    async def test_request_body(self, credential):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "responseTime": 5})

        client = make_client(handler)
        await client.test_connection(credential)
        await client.aclose()

        assert seen == [("POST", "/api/test-connection", credential.to_backend())]

    @pytest.mark.asyncio
    async def test_system_info(self, backend, credential):
        info = await backend.fetch_system_info(credential)
        assert info.cpu_cores == 8
        assert info.cpu_model.startswith("AMD EPYC")
        assert info.load_average == "0.10, 0.20, 0.30"

    @pytest.mark.asyncio
    async def test_connect_error_is_backend_unavailable(self, unreachable_transport, credential):
        client = HttpProbeClient("http://backend.test", transport=unreachable_transport)
        with pytest.raises(BackendUnavailable):
            await client.test_connection(credential)
        with pytest.raises(BackendUnavailable):
            await client.fetch_system_info(credential)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_read_timeout_is_a_timed_out_result(self, credential):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = make_client(handler)
        result = await client.test_connection(credential)
        await client.aclose()

        assert not result.success
        assert result.error_kind == "timeout"

    @pytest.mark.asyncio
    async def test_error_status(self, credential):
        client = make_client(lambda request: httpx.Response(500, text="kaboom"))
        with pytest.raises(ProbeBackendError) as exc_info:
            await client.test_connection(credential)
        await client.aclose()
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_invalid_json(self, credential):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ProbeBackendError, match="Invalid JSON"):
            await client.fetch_system_info(credential)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_payload(self, credential):
        client = make_client(lambda request: httpx.Response(200, json={"responseTime": -1}))
        with pytest.raises(ProbeBackendError):
            await client.test_connection(credential)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_check_servers(self, credential):
        def handler(request):
            servers = json.loads(request.content)["servers"]
            return httpx.Response(
                200,
                json=[
                    {
                        "id": f"{s['host']}-0",
                        "host": s["host"],
                        "port": s["port"],
                        "username": s["username"],
                        "status": "online",
                        "responseTime": 12,
                    }
                    for s in servers
                ],
            )

        client = make_client(handler)
        statuses = await client.check_servers([credential])
        await client.aclose()

        assert len(statuses) == 1
        assert statuses[0].state == "online"
        assert statuses[0].response_time_ms == 12

    @pytest.mark.asyncio
    async def test_refresh_server(self):
        def handler(request):
            assert request.url.path == "/api/refresh-server/web-01-0"
            return httpx.Response(
                200,
                json={
                    "id": "web-01-0",
                    "host": "web-01",
                    "port": 22,
                    "username": "admin",
                    "status": "offline",
                    "error": "Connection refused",
                },
            )

        client = make_client(handler)
        status = await client.refresh_server("web-01-0")
        await client.aclose()

        assert status.state == "offline"
        assert status.error_message == "Connection refused"
