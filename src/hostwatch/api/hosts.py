"""API endpoints over the batch orchestrator."""

import logging

from fastapi import APIRouter, Depends
from starlette.requests import Request

from hostwatch.api.models import BatchRequest, BatchResponse
from hostwatch.orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["hosts"])


def get_orchestrator(request: Request) -> BatchOrchestrator:
    return request.app.state.orchestrator


@router.post("/batches")
async def submit_batch(
    body: BatchRequest,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> BatchResponse:
    """Parse a credential list and probe every host in it.

    A malformed line rejects the whole batch with a 400 naming the line;
    no host records are created in that case.
    """
    notices: list[str] = []
    statuses = await orchestrator.submit_text(body.text, notices)

    return BatchResponse.from_statuses(statuses, notice=notices[-1] if notices else None)


@router.get("/hosts")
async def list_hosts(
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> list[dict]:
    return [status.to_api() for status in orchestrator.list_hosts()]


@router.get("/hosts/summary")
async def hosts_summary(
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict:
    return orchestrator.store.summary().model_dump(by_alias=True)


@router.get("/hosts/{host_id:path}")
async def get_host(
    host_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict:
    return orchestrator.get(host_id).to_api()


@router.post("/hosts/{host_id:path}/reconnect")
async def reconnect_host(
    host_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict:
    logger.info(f"Reconnect requested for {host_id}")
    status = await orchestrator.reconnect(host_id)
    return status.to_api()


@router.post("/hosts/{host_id:path}/refresh")
async def refresh_host(
    host_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict:
    logger.info(f"Refresh requested for {host_id}")
    status = await orchestrator.refresh(host_id)
    return status.to_api()


@router.delete("/hosts/{host_id:path}")
async def delete_host(
    host_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
) -> dict:
    orchestrator.forget(host_id)
    return {"deleted": host_id}
