# jobfeed/main.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .clock import utcnow
from .config import Settings, settings
from .db import init_db, make_engine, make_session_factory
from .errors import RunNotFoundError
from .logs import configure_logging
from .registry import EndpointRegistry
from .scheduler import ImportScheduler
from .schemas import AutoImportIn, StartImportIn
from .services.fetcher import FeedFetcher
from .services.ingest import ImportService
from .services.ledger import ImportLedger
from .services.queue import WorkQueue
from .services.upsert import UpsertEngine
from .services.worker import WorkerPool

LOG = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything the process owns, built once and wired explicitly."""

    settings: Settings
    engine: object
    registry: EndpointRegistry
    ledger: ImportLedger
    queue: WorkQueue
    service: ImportService
    pool: WorkerPool
    scheduler: ImportScheduler

    def start(self) -> None:
        init_db(self.engine)
        self.queue.requeue_stalled()
        if self.settings.WORKERS_ENABLED:
            self.pool.start()
        if self.settings.SCHEDULER_ENABLED:
            self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()
        self.pool.stop()


def build_runtime(cfg: Settings = settings, *, fetcher: FeedFetcher | None = None) -> Runtime:
    engine = make_engine(cfg.DB_URL)
    session_factory = make_session_factory(engine)
    registry = EndpointRegistry()
    ledger = ImportLedger(session_factory)
    queue = WorkQueue(
        session_factory,
        max_attempts=cfg.QUEUE_MAX_ATTEMPTS,
        backoff_seconds=cfg.QUEUE_BACKOFF_SECONDS,
        keep_completed=cfg.QUEUE_KEEP_COMPLETED,
        keep_failed=cfg.QUEUE_KEEP_FAILED,
    )
    service = ImportService(
        registry=registry,
        ledger=ledger,
        queue=queue,
        fetcher=fetcher or FeedFetcher(timeout=cfg.FETCH_TIMEOUT),
        upserter=UpsertEngine(session_factory, ledger),
        jitter_seconds=cfg.IMPORT_JITTER_SECONDS,
    )
    pool = WorkerPool(queue, service.process_task, concurrency=cfg.WORKER_CONCURRENCY, poll_interval=cfg.WORKER_POLL_INTERVAL)
    scheduler = ImportScheduler(service, cron=cfg.IMPORT_CRON)
    return Runtime(cfg, engine, registry, ledger, queue, service, pool, scheduler)


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def ok(data=None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def failure(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


router = APIRouter(prefix="/import")


@router.post("/start")
def start_import(payload: Optional[StartImportIn] = None, rt: Runtime = Depends(get_runtime)):
    urls = [u.strip() for u in ((payload.urls or []) if payload else []) if u and u.strip()]
    if not urls:
        return failure(400, "URLs array is required")
    queued = rt.service.start_import(urls)
    return ok([q.model_dump(by_alias=True) for q in queued], f"{len(queued)} import jobs queued successfully")


@router.post("/auto")
def auto_import(payload: Optional[AutoImportIn] = None, rt: Runtime = Depends(get_runtime)):
    filters = payload.model_dump(exclude_none=True) if payload else {}
    queued = rt.scheduler.trigger_now(**filters)
    return ok([q.model_dump(by_alias=True) for q in queued], f"{len(queued)} auto import jobs queued successfully")


@router.get("/endpoints")
def endpoints(rt: Runtime = Depends(get_runtime)):
    reg = rt.registry
    return ok({
        "endpoints": [e.to_dict() for e in reg.endpoints()],
        "sources": reg.sources(),
        "categories": reg.categories(),
        "summary": reg.counts_by_source(),
    })


@router.get("/queue/status")
def queue_status(rt: Runtime = Depends(get_runtime)):
    return ok(rt.queue.status().model_dump())


@router.get("/history")
def history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    source: str | None = Query(None),
    rt: Runtime = Depends(get_runtime),
):
    return ok(rt.ledger.history(page=page, limit=limit, source=source).model_dump(by_alias=True, mode="json"))


@router.get("/history/{run_id}")
def history_detail(run_id: int, rt: Runtime = Depends(get_runtime)):
    return ok(rt.ledger.get(run_id).model_dump(by_alias=True, mode="json"))


def create_app(runtime: Runtime | None = None) -> FastAPI:
    app = FastAPI(title="Job Feed Importer")
    app.state.runtime = runtime or build_runtime()
    app.include_router(router)

    @app.on_event("startup")
    def on_start():
        rt: Runtime = app.state.runtime
        configure_logging(rt.settings.LOG_LEVEL)
        rt.start()
        LOG.info("Job feed importer up (db=%s)", rt.engine.url)

    @app.on_event("shutdown")
    def on_stop():
        app.state.runtime.stop()

    @app.exception_handler(RunNotFoundError)
    async def not_found(request: Request, exc: RunNotFoundError):
        return failure(404, "Import log not found", str(exc))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        LOG.exception("Unhandled error on %s %s", request.method, request.url.path)
        return failure(500, "Internal server error", str(exc))

    @app.get("/health")
    def health():
        rt: Runtime = app.state.runtime
        return {
            "status": "healthy",
            "timestamp": utcnow().isoformat(),
            "workers": rt.pool.running,
            "scheduler": rt.scheduler.status(),
        }

    return app


app = create_app()
