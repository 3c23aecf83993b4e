from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HostState = Literal["connecting", "online", "offline", "error"]

TERMINAL_STATES: frozenset[str] = frozenset({"online", "offline", "error"})

# error kinds reported by the backend that mean "the host is simply not there"
OFFLINE_ERROR_KINDS: frozenset[str] = frozenset({"refused", "unreachable"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """One parsed ``host:port@username:password`` line."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=1, le=65535)
    username: str
    password: str = Field(repr=False)

    @field_validator("host", "username", "password")
    @classmethod
    def strip_and_require(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def format(self) -> str:
        return f"{self.host}:{self.port}@{self.username}:{self.password}"

    def to_backend(self) -> dict[str, Any]:
        """Request body understood by the probing backend."""
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password,
        }


class SystemInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    architecture: str = ""
    ram: str = ""
    cpu_model: str = Field("", alias="cpuModel")
    cpu_cores: int = Field(0, ge=0, alias="cpuCores")
    gpu: str = ""
    storage: str = ""
    uptime: str = ""
    load_average: str = Field("", alias="loadAverage")


class ConnectionTestResult(BaseModel):
    """Outcome of a single ``test_connection`` call."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    response_time_ms: Optional[int] = Field(None, ge=0, alias="responseTime")
    error: Optional[str] = None
    error_kind: Optional[str] = Field(None, alias="errorKind")

    @classmethod
    def timed_out(cls, timeout: float) -> "ConnectionTestResult":
        return cls(
            success=False,
            error=f"Connection timed out after {timeout:g}s",
            error_kind="timeout",
        )


class HostStatus(BaseModel):
    """Status record of one host, as kept in the status store.

    ``system_info`` normally accompanies ``online`` only. A failed refresh
    keeps the last known snapshot for display, in which case
    ``system_info_stale`` is set.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    host: str
    port: int = Field(ge=1, le=65535)
    username: str
    state: HostState = Field("connecting", alias="status")
    last_checked: Optional[datetime] = Field(None, alias="lastChecked")
    response_time_ms: Optional[int] = Field(None, ge=0, alias="responseTime")
    error_message: Optional[str] = Field(None, alias="error")
    system_info: Optional[SystemInfo] = Field(None, alias="systemInfo")
    system_info_stale: bool = Field(False, alias="systemInfoStale")
    simulated: bool = False

    @model_validator(mode="after")
    def check_state_fields(self) -> "HostStatus":
        if self.error_message is not None and self.state not in ("offline", "error"):
            raise ValueError(f"error_message is not allowed in state {self.state}")
        if self.system_info is not None and self.state != "online":
            if not (self.system_info_stale and self.state in ("offline", "error")):
                raise ValueError(f"system_info is not allowed in state {self.state}")
        if self.system_info_stale and self.state == "online":
            raise ValueError("an online host cannot carry stale system_info")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @classmethod
    def connecting(cls, host_id: str, credential: Credential) -> "HostStatus":
        return cls(
            id=host_id,
            host=credential.host,
            port=credential.port,
            username=credential.username,
            state="connecting",
        )

    def evolve(self, **changes: Any) -> "HostStatus":
        """Validated copy of this record with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BatchSummary(BaseModel):
    """Overview counters for a set of host records."""

    total: int = 0
    online: int = 0
    offline: int = 0
    error: int = 0
    connecting: int = 0
    total_cores: int = Field(0, alias="totalCores")
    simulated: int = 0

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_statuses(cls, statuses: list[HostStatus]) -> "BatchSummary":
        summary = cls(total=len(statuses))
        for status in statuses:
            setattr(summary, status.state, getattr(summary, status.state) + 1)
            if status.system_info is not None and not status.system_info_stale:
                summary.total_cores += status.system_info.cpu_cores
            if status.simulated:
                summary.simulated += 1
        return summary
