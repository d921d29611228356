"""
/blocklist — add and remove blocked domains (the popup's editing surface).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import BlockListOut, DomainIn
from ...errors import DomainAlreadyBlocked, InvalidDomain

router = APIRouter(prefix="/blocklist", tags=["blocklist"])


def _get_service(request: Request):
    return request.app.state.service


@router.get("", response_model=BlockListOut)
async def get_blocklist(service=Depends(_get_service)):
    return BlockListOut(domains=await service.blocklist.domains())


@router.post("", response_model=BlockListOut, status_code=201)
async def add_domain(req: DomainIn, service=Depends(_get_service)):
    """Normalize and add a domain; rules are reconciled by the change watcher."""
    try:
        await service.blocklist.add(req.domain)
    except InvalidDomain as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DomainAlreadyBlocked as e:
        raise HTTPException(status_code=409, detail=str(e))
    return BlockListOut(domains=await service.blocklist.domains())


@router.delete("/{domain}", response_model=BlockListOut)
async def remove_domain(domain: str, service=Depends(_get_service)):
    removed = await service.blocklist.remove(domain)
    if not removed:
        raise HTTPException(status_code=404, detail="Domain not in block list")
    return BlockListOut(domains=await service.blocklist.domains())
