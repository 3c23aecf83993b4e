"""Fan credential batches out to a probe client and track per-host state."""

import asyncio
import itertools
import logging
from collections import deque
from typing import AsyncIterator, Callable, Iterable, Optional

import httpx

from hostwatch.config import Settings
from hostwatch.credentials import parse_credentials
from hostwatch.exceptions import (
    BackendUnavailable,
    HostNotFound,
    HostwatchValidationException,
    ProbeBackendError,
    ProbeError,
    ProbeRefused,
    ProbeTimeout,
)
from hostwatch.models import (
    OFFLINE_ERROR_KINDS,
    ConnectionTestResult,
    Credential,
    HostStatus,
    SystemInfo,
    utcnow,
)
from hostwatch.probes import HttpProbeClient, ProbeClient, SimulatedProbeClient
from hostwatch.store import StatusStore

logger = logging.getLogger(__name__)

HostListener = Callable[[HostStatus], None]
BatchListener = Callable[[list[HostStatus]], None]
NoticeListener = Callable[[str], None]

# (record the probe starts from, credential to probe with)
Entry = tuple[HostStatus, Credential]


class BatchOrchestrator:
    """
    Owns the connecting -> online/offline/error lifecycle of every host.

    All writes to the status store go through here. Each operation
    (a batch, a reconnect, a refresh) picks its probe client once: the
    real backend if it answers its health check, the simulator otherwise.
    If the backend disappears halfway through, the whole operation is run
    again on the simulator so one operation never mixes real and simulated
    results.

    A reconnect or refresh for a host that is still being probed does not
    start a second probe; it waits for the running one and returns its
    result.
    """

    def __init__(
        self,
        probe_client: ProbeClient,
        store: Optional[StatusStore] = None,
        fallback: Optional[ProbeClient] = None,
        probe_timeout: float = 10.0,
        max_concurrent_probes: int = 32,
        on_host_updated: Optional[HostListener] = None,
        on_batch_processed: Optional[BatchListener] = None,
        on_notice: Optional[NoticeListener] = None,
    ):
        self.probe_client = probe_client
        self.fallback = fallback
        self.store = store if store is not None else StatusStore()
        self.probe_timeout = probe_timeout
        self.on_host_updated = on_host_updated
        self.on_batch_processed = on_batch_processed
        self.on_notice = on_notice
        self.notices: deque[str] = deque(maxlen=100)

        self._semaphore = asyncio.Semaphore(max_concurrent_probes)
        self._batch_tokens = itertools.count(1)
        self._inflight: dict[str, asyncio.Future] = {}
        # session-only; needed to re-probe by id, never copied into the store
        self._keyring: dict[str, Credential] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[StatusStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **listeners,
    ) -> "BatchOrchestrator":
        fallback = None
        if settings.simulation_enabled:
            fallback = SimulatedProbeClient.from_settings(settings)
        return cls(
            HttpProbeClient.from_settings(settings, transport=transport),
            store=store,
            fallback=fallback,
            probe_timeout=settings.probe_timeout,
            max_concurrent_probes=settings.max_concurrent_probes,
            **listeners,
        )

    async def aclose(self) -> None:
        await self.probe_client.aclose()
        if self.fallback is not None:
            await self.fallback.aclose()

    # -------- reads --------

    def get(self, host_id: str) -> HostStatus:
        status = self.store.get(host_id)
        if status is None:
            raise HostNotFound(f"Host '{host_id}' not found")
        return status

    def list_hosts(self) -> list[HostStatus]:
        return self.store.list()

    def is_probing(self, host_id: str) -> bool:
        return host_id in self._inflight

    # -------- operations --------

    async def stream_batch(
        self, credentials: Iterable[Credential], notices: Optional[list[str]] = None
    ) -> AsyncIterator[HostStatus]:
        """
        Probe every credential concurrently.

        Yields the ``connecting`` record of every host first, then each
        terminal record as its probe settles (in completion order).
        Notices raised by this batch alone are appended to ``notices``.
        """
        token = next(self._batch_tokens)
        owned: dict[str, asyncio.Future] = {}
        entries: list[Entry] = []
        try:
            for index, credential in enumerate(credentials):
                host_id = f"{credential.address}-{token}-{index}"
                self._keyring[host_id] = credential
                record = HostStatus.connecting(host_id, credential)
                entries.append((record, credential))
                yield self._enter_connecting(record, owned)

            logger.info(f"Batch {token}: probing {len(entries)} hosts")
            async for status in self._probe_entries(
                entries, owned, refresh=False, notices=notices
            ):
                yield status
        finally:
            self._abandon(owned)

    async def submit_batch(
        self, credentials: Iterable[Credential], notices: Optional[list[str]] = None
    ) -> list[HostStatus]:
        """Probe a batch to completion; returns terminal records in input order."""
        latest: dict[str, HostStatus] = {}
        async for status in self.stream_batch(credentials, notices):
            latest[status.id] = status

        statuses = list(latest.values())
        online = sum(1 for s in statuses if s.state == "online")
        logger.info(f"Batch complete: {online}/{len(statuses)} hosts online")
        self._emit(self.on_batch_processed, statuses)
        return statuses

    async def submit_text(
        self, text: str, notices: Optional[list[str]] = None
    ) -> list[HostStatus]:
        """Parse a credential list and probe it. A parse error creates no records."""
        return await self.submit_batch(parse_credentials(text), notices)

    async def reconnect(self, host_id: str) -> HostStatus:
        """Full re-probe of one host: connection test, then system info."""
        return await self._reprobe(host_id, refresh=False)

    async def refresh(self, host_id: str) -> HostStatus:
        """
        Re-validate liveness of one host.

        A failed refresh keeps the last known system info on the record,
        flagged as stale.
        """
        return await self._reprobe(host_id, refresh=True)

    def forget(self, host_id: str) -> None:
        """Drop a host record and its credential."""
        if host_id in self._inflight:
            raise HostwatchValidationException(
                f"Host '{host_id}' is being probed and cannot be removed"
            )
        self._keyring.pop(host_id, None)
        if not self.store.remove(host_id):
            raise HostNotFound(f"Host '{host_id}' not found")
        logger.info(f"Removed host {host_id}")

    # -------- internals --------

    async def _reprobe(self, host_id: str, refresh: bool) -> HostStatus:
        running = self._inflight.get(host_id)
        if running is not None:
            logger.info(f"{host_id} is already being probed, waiting for that probe")
            return await asyncio.shield(running)

        base = self.get(host_id)
        credential = self._keyring.get(host_id)
        if credential is None:
            raise HostNotFound(f"No credential on file for host '{host_id}'")

        # registered before the first await so a concurrent call attaches to it
        owned: dict[str, asyncio.Future] = {}
        self._enter_connecting(base, owned)

        try:
            async for _ in self._probe_entries([(base, credential)], owned, refresh=refresh):
                pass
        finally:
            self._abandon(owned)
        return await owned[host_id]

    async def _probe_entries(
        self,
        entries: list[Entry],
        owned: dict[str, asyncio.Future],
        refresh: bool,
        notices: Optional[list[str]] = None,
    ) -> AsyncIterator[HostStatus]:
        if not entries:
            return

        client = await self._select_client(notices)
        while True:
            if client is None:
                for base, _ in entries:
                    if self._owns(owned, base.id):
                        carried = base.system_info if refresh else None
                        yield self._finish(
                            self._failed(
                                base, False, "error", "Probing backend is unavailable", carried
                            )
                        )
                return

            try:
                async for status in self._run(client, entries, refresh):
                    yield status
                return
            except BackendUnavailable as e:
                if client.simulated:
                    raise
                client = self._fall_back(str(e), notices)

            if client is None:
                continue

            # every host of the operation is probed again, finished ones included
            rerun: list[Entry] = []
            for base, credential in entries:
                if base.id in self._inflight and not self._owns(owned, base.id):
                    logger.info(f"{base.id} is being probed by another request, leaving it there")
                    continue
                yield self._enter_connecting(base, owned, simulated=True)
                rerun.append((base, credential))
            entries = rerun

    async def _run(
        self, client: ProbeClient, entries: list[Entry], refresh: bool
    ) -> AsyncIterator[HostStatus]:
        tasks = [
            asyncio.create_task(self._probe_one(client, base, credential, refresh))
            for base, credential in entries
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                status = await next_done
                yield self._finish(status)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _probe_one(
        self, client: ProbeClient, base: HostStatus, credential: Credential, refresh: bool
    ) -> HostStatus:
        simulated = client.simulated
        previous_info = base.system_info if refresh else None

        async with self._semaphore:
            try:
                result = await asyncio.wait_for(
                    client.test_connection(credential), timeout=self.probe_timeout
                )
            except BackendUnavailable:
                raise
            except (asyncio.TimeoutError, ProbeTimeout):
                result = ConnectionTestResult.timed_out(self.probe_timeout)
            except ProbeRefused as e:
                result = ConnectionTestResult(success=False, error=str(e), error_kind="refused")
            except ProbeBackendError as e:
                logger.warning(f"Backend error while testing {base.id}: {e}")
                return self._failed(base, simulated, "error", str(e), previous_info)
            except Exception as e:
                logger.error(f"Unexpected error while testing {base.id}: {e}")
                return self._failed(base, simulated, "error", str(e), previous_info)

            if not result.success:
                kind = result.error_kind
                state = "offline" if kind is None or kind in OFFLINE_ERROR_KINDS else "error"
                logger.info(f"{base.id} is {state}: {result.error}")
                return self._failed(
                    base,
                    simulated,
                    state,
                    result.error or "Connection failed",
                    previous_info,
                    response_time_ms=result.response_time_ms,
                )

            system_info = None
            # reuse only a fresh snapshot that came from the same kind of source
            if refresh and not base.system_info_stale and base.simulated == simulated:
                system_info = previous_info
            if system_info is None:
                system_info = await self._fetch_system_info(client, base, credential)

        return base.evolve(
            state="online",
            last_checked=utcnow(),
            response_time_ms=result.response_time_ms,
            error_message=None,
            system_info=system_info,
            system_info_stale=False,
            simulated=simulated,
        )

    async def _fetch_system_info(
        self, client: ProbeClient, base: HostStatus, credential: Credential
    ) -> Optional[SystemInfo]:
        try:
            return await asyncio.wait_for(
                client.fetch_system_info(credential), timeout=self.probe_timeout
            )
        except BackendUnavailable:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"System info for {base.id} timed out after {self.probe_timeout:g}s")
        except ProbeError as e:
            logger.warning(f"Failed to fetch system info for {base.id}: {e}")
        return None

    @staticmethod
    def _failed(
        base: HostStatus,
        simulated: bool,
        state: str,
        message: str,
        carried_info: Optional[SystemInfo] = None,
        response_time_ms: Optional[int] = None,
    ) -> HostStatus:
        return base.evolve(
            state=state,
            last_checked=utcnow(),
            response_time_ms=response_time_ms,
            error_message=message,
            system_info=carried_info,
            system_info_stale=carried_info is not None,
            simulated=simulated,
        )

    async def _select_client(
        self, notices: Optional[list[str]] = None
    ) -> Optional[ProbeClient]:
        if self.probe_client.simulated:
            self._notice("Using simulated data: simulation was requested", notices)
            return self.probe_client
        try:
            if await self.probe_client.health_check():
                return self.probe_client
        except BackendUnavailable as e:
            return self._fall_back(str(e), notices)
        return self._fall_back(
            f"probing backend at {self._backend_name()} is unreachable", notices
        )

    def _fall_back(
        self, reason: str, notices: Optional[list[str]] = None
    ) -> Optional[ProbeClient]:
        if self.fallback is None:
            logger.error(f"{reason}; simulation fallback is disabled")
            return None
        self._notice(f"Using simulated data: {reason}", notices)
        return self.fallback

    def _backend_name(self) -> str:
        return getattr(self.probe_client, "base_url", self.probe_client.name)

    def _owns(self, owned: dict[str, asyncio.Future], host_id: str) -> bool:
        running = self._inflight.get(host_id)
        return running is not None and owned.get(host_id) is running

    def _enter_connecting(
        self, record: HostStatus, owned: dict[str, asyncio.Future], simulated: bool = False
    ) -> HostStatus:
        running = self._inflight.get(record.id)
        if running is None or running.done():
            running = asyncio.get_running_loop().create_future()
            self._inflight[record.id] = running
        owned[record.id] = running

        connecting = record.evolve(
            state="connecting",
            response_time_ms=None,
            error_message=None,
            system_info=None,
            system_info_stale=False,
            simulated=simulated,
        )
        return self._publish(connecting)

    def _finish(self, status: HostStatus) -> HostStatus:
        stored = self._publish(status)
        running = self._inflight.pop(status.id, None)
        if running is not None and not running.done():
            running.set_result(stored)
        return stored

    def _abandon(self, owned: dict[str, asyncio.Future]) -> None:
        """Settle hosts whose operation ended before their probe did."""
        for host_id in owned:
            if not self._owns(owned, host_id):
                continue
            logger.warning(f"Probe of {host_id} was interrupted")
            current = self.store.get(host_id)
            if current is None:
                self._inflight.pop(host_id).cancel()
                continue
            self._finish(self._failed(current, current.simulated, "error", "Probe was interrupted"))

    def _publish(self, status: HostStatus) -> HostStatus:
        stored = self.store.upsert(status)
        self._emit(self.on_host_updated, stored)
        return stored

    def _notice(self, message: str, notices: Optional[list[str]] = None) -> None:
        logger.warning(message)
        self.notices.append(message)
        if notices is not None:
            notices.append(message)
        self._emit(self.on_notice, message)

    @staticmethod
    def _emit(listener: Optional[Callable], *args) -> None:
        if listener is None:
            return
        try:
            listener(*args)
        except Exception as e:
            logger.warning(f"Listener {listener!r} failed: {e}")
