"""
/rules — the rule set currently held by the matching engine.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request

from ...api.schemas import RuleOut

router = APIRouter(prefix="/rules", tags=["rules"])


def _get_service(request: Request):
    return request.app.state.service


@router.get("", response_model=List[RuleOut])
async def get_rules(service=Depends(_get_service)):
    return [
        RuleOut(
            id=r.id,
            domain=r.domain,
            redirect_target=r.redirect_target,
            url_filter=r.url_filter,
        )
        for r in await service.rules()
    ]


@router.post("/sync")
async def force_sync(service=Depends(_get_service)):
    """Run a full reconciliation now."""
    return {"synced": await service.reconcile()}
