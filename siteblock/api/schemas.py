"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ── Timer ──────────────────────────────────────────────────────────────────

class TimerCommand(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESET = "reset"


class TimerStateOut(BaseModel):
    mode: str = Field(..., description="idle | work | break | work-paused | break-paused")
    time_remaining: int = Field(..., ge=0)
    work_duration: int = Field(..., gt=0)
    break_duration: int = Field(..., gt=0)
    music_enabled: bool
    music_volume: int = Field(..., ge=0, le=100)
    last_update: int


class TimerSettingsPatch(BaseModel):
    work_duration:  Optional[int]  = Field(None, ge=60, le=7200)
    break_duration: Optional[int]  = Field(None, ge=60, le=3600)
    music_enabled:  Optional[bool] = None
    music_volume:   Optional[int]  = Field(None, ge=0,  le=100)


# ── Temporary allow ────────────────────────────────────────────────────────

class GrantRequest(BaseModel):
    domain: str = Field(..., description="Bare hostname, e.g. reddit.com")
    tab_id: Optional[Any] = None


class GrantOut(BaseModel):
    ok: bool
    domain: str
    expiry: Optional[int] = None
    navigated: bool = False
    url: Optional[str] = None


class AllowancesOut(BaseModel):
    allows: Dict[str, int]


# ── Block list ─────────────────────────────────────────────────────────────

class DomainIn(BaseModel):
    domain: str


class BlockListOut(BaseModel):
    domains: List[str]


# ── Rules ──────────────────────────────────────────────────────────────────

class RuleOut(BaseModel):
    id: int
    domain: str
    redirect_target: str
    url_filter: str


# ── Stats ──────────────────────────────────────────────────────────────────

class BlockStatsOut(BaseModel):
    stats: Dict[str, Dict[str, int]]
