"""Probe clients: the real HTTP backend and the simulated fallback."""

from hostwatch.probes.base import ProbeClient
from hostwatch.probes.http import HttpProbeClient
from hostwatch.probes.simulator import SimulatedProbeClient

__all__ = ["ProbeClient", "HttpProbeClient", "SimulatedProbeClient"]
