import logging
import threading
from typing import Optional

from hostwatch.models import BatchSummary, HostStatus

logger = logging.getLogger(__name__)


class StatusStore:
    """
    The session's collection of HostStatus records, keyed by host id.

    Every write replaces the whole record for its id and is serialized by a
    lock, so the record that wins is the last one committed. ``list()``
    keeps the order in which ids first appeared. Reads hand out copies;
    nothing returned from here aliases the stored records.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, HostStatus] = {}

    def upsert(self, status: HostStatus) -> HostStatus:
        stored = status.model_copy(deep=True)
        with self._lock:
            # dict keeps the original insertion slot when an existing key is reassigned
            self._records[stored.id] = stored
        logger.debug(f"Stored {stored.id}: {stored.state}")
        return stored.model_copy(deep=True)

    def get(self, host_id: str) -> Optional[HostStatus]:
        with self._lock:
            record = self._records.get(host_id)
        return record.model_copy(deep=True) if record is not None else None

    def list(self) -> list[HostStatus]:
        with self._lock:
            records = list(self._records.values())
        return [record.model_copy(deep=True) for record in records]

    def remove(self, host_id: str) -> bool:
        with self._lock:
            return self._records.pop(host_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def summary(self) -> BatchSummary:
        return BatchSummary.from_statuses(self.list())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, host_id: object) -> bool:
        with self._lock:
            return host_id in self._records
