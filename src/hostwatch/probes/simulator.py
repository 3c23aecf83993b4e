import asyncio
import logging
import random
from typing import Optional

from hostwatch.config import Settings
from hostwatch.models import ConnectionTestResult, Credential, SystemInfo
from hostwatch.probes.base import ProbeClient

logger = logging.getLogger(__name__)

CPU_MODELS = [
    "Intel(R) Core(TM) i7-10700K CPU @ 3.80GHz",
    "AMD Ryzen 7 3700X 8-Core Processor",
    "Intel(R) Xeon(R) CPU E5-2680 v4 @ 2.40GHz",
    "AMD EPYC 7502P 32-Core Processor",
    "Intel(R) Core(TM) i9-11900K CPU @ 3.50GHz",
]

GPUS = ["No discrete GPU detected", "NVIDIA GeForce RTX 3080"]

UPTIMES = ["11h ago", "12h ago", "13h ago", "14h ago", "15h ago", "20h ago"]


class SimulatedProbeClient(ProbeClient):
    """
    Stand-in for the probing backend, used when it cannot be reached.

    Outcomes are drawn from ``rng``; pass a seeded ``random.Random`` (or a
    stub with ``random``/``randint``/``uniform``/``choice``) to get a
    repeatable sequence.
    """

    name = "simulator"
    simulated = True

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        online_ratio: float = 0.7,
        latency: float = 0.0,
    ):
        self.rng = rng if rng is not None else random.Random()
        self.online_ratio = online_ratio
        self.latency = latency

    @classmethod
    def from_settings(cls, settings: Settings) -> "SimulatedProbeClient":
        return cls(
            rng=random.Random(settings.simulation_seed),
            latency=settings.simulation_latency,
        )

    async def _delay(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    async def test_connection(self, credential: Credential) -> ConnectionTestResult:
        await self._delay()
        if self.rng.random() < self.online_ratio:
            return ConnectionTestResult(
                success=True, response_time_ms=self.rng.randint(50, 249)
            )

        logger.debug(f"Simulated connection failure for {credential.address}")
        return ConnectionTestResult(
            success=False,
            error=f"Connection refused by {credential.address} (simulated)",
            error_kind="refused",
        )

    async def fetch_system_info(self, credential: Credential) -> SystemInfo:
        await self._delay()
        rng = self.rng
        load = ", ".join(f"{rng.uniform(0, 2):.2f}" for _ in range(3))
        return SystemInfo(
            architecture="x86_64",
            ram=f"{rng.uniform(1, 33):.1f}Gi",
            cpu_model=rng.choice(CPU_MODELS),
            cpu_cores=rng.randint(1, 24),
            gpu=rng.choice(GPUS),
            storage=f"{rng.randint(100, 599)}GB",
            uptime=rng.choice(UPTIMES),
            load_average=load,
        )
