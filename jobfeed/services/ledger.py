from __future__ import annotations

import logging
import math
from typing import Callable

from sqlalchemy.orm import Session

from ..clock import millis_between, utcnow
from ..errors import LedgerStateError, RunNotFoundError
from ..models import (
    ImportRun, RUN_COMPLETED, RUN_FAILED, RUN_PENDING, RUN_PROCESSING, RUN_TERMINAL,
)
from ..schemas import ImportHistory, ImportRunOut, ImportStats, Pagination

LOG = logging.getLogger(__name__)


class ImportLedger:
    """Owns ImportRun rows: creation, forward-only status changes, counters.

    Every call opens its own short session. A run is only ever mutated by the
    worker executing its task, so no row locking is done here.
    """

    def __init__(self, session_factory: Callable[[], Session], clock=utcnow):
        self._session_factory = session_factory
        self._clock = clock

    # ---- writes -----------------------------------------------------------

    def create(self, source: str, source_url: str) -> int:
        with self._session_factory() as db:
            run = ImportRun(
                source=source,
                source_url=source_url,
                status=RUN_PENDING,
                failed_jobs_details=[],
                created_at=self._clock(),
            )
            db.add(run)
            db.commit()
            LOG.debug("Created import run %s for %s", run.id, source_url)
            return run.id

    def mark_processing(self, run_id: int) -> ImportRunOut:
        """pending -> processing; a retried run stays processing and keeps its start time."""
        with self._session_factory() as db:
            run = self._load_mutable(db, run_id)
            run.status = RUN_PROCESSING
            run.attempts = (run.attempts or 0) + 1
            if run.start_time is None:
                run.start_time = self._clock()
            db.commit()
            return ImportRunOut.model_validate(run)

    def record_fetched(self, run_id: int, total_fetched: int, skipped: int = 0) -> None:
        with self._session_factory() as db:
            run = self._load_processing(db, run_id)
            run.total_fetched = total_fetched
            run.skipped_jobs = skipped
            db.commit()

    def complete(self, run_id: int, stats: ImportStats) -> ImportRunOut:
        with self._session_factory() as db:
            run = self._load_processing(db, run_id)
            now = self._clock()
            run.total_imported = stats.total_imported
            run.new_jobs = stats.new_jobs
            run.updated_jobs = stats.updated_jobs
            run.failed_jobs = stats.failed_jobs
            run.failed_jobs_details = [d.model_dump(by_alias=True) for d in stats.failed_jobs_details]
            run.status = RUN_COMPLETED
            run.end_time = now
            run.duration = millis_between(run.start_time or now, now)
            db.commit()
            LOG.info(
                "Import run %s completed: %d imported (%d new, %d updated), %d failed",
                run_id, stats.total_imported, stats.new_jobs, stats.updated_jobs, stats.failed_jobs,
            )
            return ImportRunOut.model_validate(run)

    def fail(self, run_id: int, error_message: str) -> ImportRunOut:
        with self._session_factory() as db:
            run = self._load_mutable(db, run_id)
            now = self._clock()
            run.status = RUN_FAILED
            run.error_message = error_message
            run.end_time = now
            run.duration = millis_between(run.start_time or now, now)
            db.commit()
            LOG.warning("Import run %s failed: %s", run_id, error_message)
            return ImportRunOut.model_validate(run)

    # ---- reads ------------------------------------------------------------

    def get(self, run_id: int) -> ImportRunOut:
        with self._session_factory() as db:
            return ImportRunOut.model_validate(self._load(db, run_id))

    def history(self, page: int = 1, limit: int = 10, source: str | None = None) -> ImportHistory:
        page = max(1, page)
        limit = max(1, limit)
        with self._session_factory() as db:
            q = db.query(ImportRun)
            if source:
                q = q.filter(ImportRun.source == source)
            total = q.count()
            rows = (
                q.order_by(ImportRun.created_at.desc(), ImportRun.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return ImportHistory(
                logs=[ImportRunOut.model_validate(r) for r in rows],
                pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
            )

    # ---- helpers ----------------------------------------------------------

    def _load(self, db: Session, run_id: int) -> ImportRun:
        run = db.get(ImportRun, run_id)
        if run is None:
            raise RunNotFoundError(f"import run {run_id} not found")
        return run

    def _load_mutable(self, db: Session, run_id: int) -> ImportRun:
        run = self._load(db, run_id)
        if run.status in RUN_TERMINAL:
            raise LedgerStateError(f"import run {run_id} is already {run.status}")
        return run

    def _load_processing(self, db: Session, run_id: int) -> ImportRun:
        run = self._load_mutable(db, run_id)
        if run.status != RUN_PROCESSING:
            raise LedgerStateError(f"import run {run_id} is {run.status}, not {RUN_PROCESSING}")
        return run
