"""
/stats — raw per-domain, per-day block counters and the increment point.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import BlockStatsOut, DomainIn

router = APIRouter(prefix="/stats", tags=["stats"])


def _get_service(request: Request):
    return request.app.state.service


@router.get("", response_model=BlockStatsOut)
async def get_stats(service=Depends(_get_service)):
    return BlockStatsOut(stats=await service.block_stats())


@router.post("/block", status_code=202)
async def record_block(req: DomainIn, service=Depends(_get_service)):
    """Count one block event for the domain, dated to the local calendar day."""
    if not await service.record_block(req.domain):
        raise HTTPException(status_code=400, detail="domain must not be blank")
    return {"status": "recorded"}
