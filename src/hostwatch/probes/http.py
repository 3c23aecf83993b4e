import logging
from json import JSONDecodeError
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from hostwatch.config import Settings
from hostwatch.exceptions import BackendUnavailable, ProbeBackendError, ProbeTimeout
from hostwatch.models import ConnectionTestResult, Credential, HostStatus, SystemInfo
from hostwatch.probes.base import ProbeClient

logger = logging.getLogger(__name__)


class HttpProbeClient(ProbeClient):
    """
    Client for the external probing service.

    The service speaks JSON over HTTP:

    - ``POST /api/test-connection``   credential -> ConnectionTestResult
    - ``POST /api/system-info``       credential -> SystemInfo
    - ``POST /api/check-servers``     {"servers": [credential, ...]} -> [HostStatus]
    - ``POST /api/refresh-server/{id}``  -> HostStatus
    - ``GET  /health``

    Connection failures towards the service raise BackendUnavailable.
    A reply with a non-2xx status raises ProbeBackendError instead.
    """

    name = "http"
    simulated = False

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        connect_timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "HttpProbeClient":
        return cls(
            settings.backend_url,
            timeout=settings.probe_timeout,
            connect_timeout=settings.backend_connect_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, json: Optional[Any] = None
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise BackendUnavailable(
                f"Probing backend at {self.base_url} is unreachable: {e}"
            ) from e
        except httpx.TimeoutException as e:
            raise ProbeTimeout(
                f"Probing backend did not answer {path} within {self.timeout:g}s"
            ) from e
        except httpx.TransportError as e:
            raise ProbeBackendError(f"Probing backend transport error on {path}: {e}") from e

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProbeBackendError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            ) from e

        try:
            return response.json()
        except JSONDecodeError as e:
            raise ProbeBackendError(
                f"Invalid JSON response from probing backend on {path}: {response.text[:200]}"
            ) from e

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/health")
        except BackendUnavailable as e:
            logger.warning(f"Probing backend health check failed: {e}")
            return False
        except (ProbeBackendError, ProbeTimeout) as e:
            # answering with an error still means the service is there
            logger.info(f"Probing backend reachable but unhealthy: {e}")
        return True

    async def test_connection(self, credential: Credential) -> ConnectionTestResult:
        logger.debug(f"Testing connection to {credential.address}")
        try:
            data = await self._request(
                "POST", "/api/test-connection", json=credential.to_backend()
            )
        except ProbeTimeout:
            return ConnectionTestResult.timed_out(self.timeout)

        try:
            return ConnectionTestResult.model_validate(data)
        except ValidationError as e:
            raise ProbeBackendError(f"Invalid test-connection response: {e}") from e

    async def fetch_system_info(self, credential: Credential) -> SystemInfo:
        logger.debug(f"Fetching system info from {credential.address}")
        data = await self._request("POST", "/api/system-info", json=credential.to_backend())
        try:
            return SystemInfo.model_validate(data)
        except ValidationError as e:
            raise ProbeBackendError(f"Invalid system-info response: {e}") from e

    async def check_servers(self, credentials: list[Credential]) -> list[HostStatus]:
        """
        Batched check, answered by the backend in one round trip.

        Exposed for direct backend use; the orchestrator probes host by host
        so it can stream results and fall back per operation.
        """
        data = await self._request(
            "POST",
            "/api/check-servers",
            json={"servers": [c.to_backend() for c in credentials]},
        )
        try:
            return [HostStatus.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            raise ProbeBackendError(f"Invalid check-servers response: {e}") from e

    async def refresh_server(self, host_id: str) -> HostStatus:
        """Backend-side refresh by id, for direct backend use like ``check_servers``."""
        data = await self._request("POST", f"/api/refresh-server/{host_id}")
        try:
            return HostStatus.model_validate(data)
        except ValidationError as e:
            raise ProbeBackendError(f"Invalid refresh-server response: {e}") from e
