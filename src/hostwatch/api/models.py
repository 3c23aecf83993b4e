from typing import Any, Optional

from pydantic import BaseModel, Field

from hostwatch.models import BatchSummary, HostStatus


class BatchRequest(BaseModel):
    """Request body for submitting a credential batch."""

    text: str = Field(
        ...,
        description="Credential list, one host:port@username:password per line",
    )


class BatchResponse(BaseModel):
    hosts: list[dict[str, Any]]
    summary: BatchSummary
    simulated: bool = False
    notice: Optional[str] = None

    @classmethod
    def from_statuses(
        cls, statuses: list[HostStatus], notice: Optional[str] = None
    ) -> "BatchResponse":
        return cls(
            hosts=[status.to_api() for status in statuses],
            summary=BatchSummary.from_statuses(statuses),
            simulated=any(status.simulated for status in statuses),
            notice=notice,
        )
