"""Pytest configuration and shared fixtures for Hostwatch tests."""
import json
from pathlib import Path

import httpx
import pytest

from hostwatch.config import Settings


SAMPLE_CREDENTIALS = """\
web-01.example.com:22@admin:s3cret

db-01.example.com:2222@root:hunter2
down.example.com:22@ops:pa:ss
"""


@pytest.fixture
def sample_text() -> str:
    """Three valid credential lines with a blank line in between."""
    return SAMPLE_CREDENTIALS


@pytest.fixture
def credential_file(tmp_path, sample_text) -> Path:
    path = tmp_path / "hosts.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path


@pytest.fixture
def test_settings() -> Settings:
    """Settings for testing; init arguments outrank env vars and files."""
    return Settings(
        log_level="debug",
        backend_url="http://backend.test",
        probe_timeout=2.0,
        max_concurrent_probes=4,
        simulation_enabled=True,
        simulation_seed=1234,
        simulation_latency=0.0,
    )


def backend_handler(request: httpx.Request) -> httpx.Response:
    """A well-behaved probing backend: every host is up except ``down.*``."""
    if request.url.path == "/health":
        return httpx.Response(200, json={"status": "ok"})

    body = json.loads(request.content) if request.content else {}
    host = body.get("host", "")

    if request.url.path == "/api/test-connection":
        if host.startswith("down."):
            return httpx.Response(
                200,
                json={"success": False, "error": "Connection refused", "errorKind": "refused"},
            )
        return httpx.Response(200, json={"success": True, "responseTime": 42})

    if request.url.path == "/api/system-info":
        return httpx.Response(
            200,
            json={
                "architecture": "x86_64",
                "ram": "15.5Gi",
                "cpuModel": "AMD EPYC 7502P 32-Core Processor",
                "cpuCores": 8,
                "gpu": "No discrete GPU detected",
                "storage": "250GB",
                "uptime": "12h ago",
                "loadAverage": "0.10, 0.20, 0.30",
            },
        )

    return httpx.Response(404, json={"detail": "Not Found"})


def unreachable_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def backend_transport() -> httpx.MockTransport:
    return httpx.MockTransport(backend_handler)


@pytest.fixture
def unreachable_transport() -> httpx.MockTransport:
    return httpx.MockTransport(unreachable_handler)
