# jobfeed/scheduler.py
from __future__ import annotations

import logging
from typing import Any

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .services.ingest import ImportService

LOG = logging.getLogger(__name__)

JOB_ID = "hourly-job-import"


def build_trigger(cron: str) -> CronTrigger:
    fields = cron.strip().split()
    if len(fields) != 5:
        raise ValueError(f"cron string must have 5 fields (got {len(fields)}): {cron!r}")
    return CronTrigger.from_crontab(cron, timezone="UTC")


class ImportScheduler:
    """Enqueues a full-registry import on a UTC cron schedule.

    The scheduler only produces queue entries; the worker pool runs them.
    """

    def __init__(self, service: ImportService, cron: str = "0 * * * *") -> None:
        self._service = service
        self.cron = cron
        self._trigger = build_trigger(cron)
        self._scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={"coalesce": True, "max_instances": 1},
            executors={"default": ThreadPoolExecutor(1)},
            jobstores={"default": MemoryJobStore()},
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if self._scheduler.running:
            return
        self._scheduler.add_job(self.tick, trigger=self._trigger, id=JOB_ID, replace_existing=True)
        self._scheduler.start()
        job = self._scheduler.get_job(JOB_ID)
        LOG.info("Import scheduler started (cron=%r, next run %s)", self.cron, getattr(job, "next_run_time", None))

    def stop(self) -> None:
        if self._scheduler.running:
            # in-flight sweeps finish; nothing new fires
            self._scheduler.shutdown(wait=False)
            LOG.info("Import scheduler stopped")

    def tick(self) -> int:
        """Scheduled entry point; never raises so the next tick is unaffected."""
        LOG.info("Starting scheduled job import")
        try:
            queued = self._service.import_all(jitter=True)
        except Exception:
            LOG.exception("Scheduled job import failed")
            return 0
        LOG.info("Scheduled job import queued %d task(s)", len(queued))
        return len(queued)

    def trigger_now(self, **filters: Any):
        """Manual 'import all sources now'; errors propagate to the caller."""
        return self._service.import_all(jitter=False, **filters)

    def status(self) -> list[dict[str, Any]]:
        job = self._scheduler.get_job(JOB_ID) if self._scheduler.running else None
        nrt = getattr(job, "next_run_time", None) if job else None
        return [{
            "name": JOB_ID,
            "schedule": self.cron,
            "running": self._scheduler.running,
            "nextRunTime": nrt.isoformat() if nrt else None,
        }]
