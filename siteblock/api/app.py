"""
FastAPI application — local blocker API.
Runs on http://127.0.0.1:8766 by default.

The store, scheduler, rule engine and service live on app.state so that each
call to create_app() produces a fully independent instance with no shared
module-level globals. This makes test isolation straightforward.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..blocking.rule_engine import JsonFileRuleEngine
from ..config import Config, config as default_config
from ..errors import EngineRejected, StoreUnavailable
from ..scheduling.wakeups import WakeUpScheduler
from ..service import BlockerService
from ..storage.kvstore import Storage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or default_config

    # -----------------------------------------------------------------------
    # Lifespan — initialises and tears down all per-app state
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = Storage(cfg.store_path)
        scheduler = WakeUpScheduler()
        engine = JsonFileRuleEngine(cfg.rules_path, max_rules=cfg.max_rules)
        service = BlockerService(storage, scheduler, engine, cfg)
        app.state.service = service

        await service.start()
        logger.info("Blocker service started (store=%s)", cfg.store_path)

        yield

        await service.stop()

    app = FastAPI(
        title="siteblock",
        description="Local domain blocker with temporary allowances and a focus timer",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        logger.error("Store unavailable while serving %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(EngineRejected)
    async def engine_rejected_handler(request: Request, exc: EngineRejected):
        logger.error("Rule engine failed while serving %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    from .routers import allow, blocklist, rules, stats, timer

    app.include_router(timer.router)
    app.include_router(allow.router)
    app.include_router(blocklist.router)
    app.include_router(rules.router)
    app.include_router(stats.router)

    @app.get("/health")
    async def health(request: Request):
        service = getattr(request.app.state, "service", None)
        pending = service.scheduler.pending_names() if service else []
        return {"status": "ok", "version": "0.1.0", "wakeups": pending}

    return app


app = create_app()
