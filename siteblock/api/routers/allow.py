"""
/allow — "five more minutes" for a blocked domain.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import AllowancesOut, GrantOut, GrantRequest

router = APIRouter(prefix="/allow", tags=["allow"])


def _get_service(request: Request):
    return request.app.state.service


@router.post("", response_model=GrantOut)
async def grant_temporary_allow(req: GrantRequest, service=Depends(_get_service)):
    """
    Grant a temporary allowance. When `navigated` is false the caller must
    navigate to `url` itself.
    """
    result = await service.grant_temporary_allow(req.domain, tab_id=req.tab_id)
    if not result.ok:
        status = 503 if result.store_unavailable else 400
        raise HTTPException(status_code=status, detail=result.error)
    return GrantOut(
        ok=True,
        domain=result.domain,
        expiry=result.expiry,
        navigated=result.navigated,
        url=result.url,
    )


@router.get("", response_model=AllowancesOut)
async def list_allowances(service=Depends(_get_service)):
    return AllowancesOut(allows=await service.temporary_allows())
