from abc import ABC, abstractmethod
from logging import getLogger

from hostwatch.models import ConnectionTestResult, Credential, SystemInfo

logger = getLogger(__name__)


class ProbeClient(ABC):
    """
    Probing capability for a single host.

    Implementations answer two questions about a credential: can we log in
    (``test_connection``), and what does the box look like
    (``fetch_system_info``, only meaningful after a successful test).

    Raising BackendUnavailable from any call means the probing service
    itself is gone, not the target host; the orchestrator then switches
    the whole operation over to a simulator.
    """

    name: str
    simulated: bool = False

    @abstractmethod
    async def test_connection(self, credential: Credential) -> ConnectionTestResult:
        pass

    @abstractmethod
    async def fetch_system_info(self, credential: Credential) -> SystemInfo:
        """
        :raises ProbeError: if the snapshot cannot be collected
        """
        pass

    async def health_check(self) -> bool:
        """True if the probing service can be reached."""
        return True

    async def aclose(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False
