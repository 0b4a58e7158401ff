from __future__ import annotations

import logging
import random
from typing import Callable, Iterable

from ..errors import FeedError, JobFeedError, LedgerStateError
from ..registry import Endpoint, EndpointRegistry
from ..schemas import EnqueuedImport
from .fetcher import FeedFetcher
from .ledger import ImportLedger
from .queue import ClaimedTask, WorkQueue
from .upsert import UpsertEngine

LOG = logging.getLogger(__name__)


class ImportService:
    """Enqueues imports and runs the fetch -> normalize -> upsert pipeline for one task."""

    def __init__(
        self,
        registry: EndpointRegistry,
        ledger: ImportLedger,
        queue: WorkQueue,
        fetcher: FeedFetcher,
        upserter: UpsertEngine,
        jitter_seconds: float = 5.0,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.queue = queue
        self.fetcher = fetcher
        self.upserter = upserter
        self.jitter_seconds = jitter_seconds
        self._rng = rng

    # ---- producing work ---------------------------------------------------

    def enqueue(self, url: str, delay: float = 0.0) -> EnqueuedImport:
        """Create a pending run for ``url`` and queue exactly one task for it."""
        endpoint = self.registry.resolve(url)
        run_id = self.ledger.create(endpoint.source, endpoint.url)
        try:
            task_id = self.queue.enqueue(endpoint.url, run_id, delay=delay)
        except Exception as e:
            self.ledger.fail(run_id, f"could not enqueue: {e}")
            raise
        LOG.info("Import task %s queued for %s (run %s)", task_id, endpoint.name, run_id)
        return EnqueuedImport(job_id=task_id, import_log_id=run_id, url=endpoint.url, source=endpoint.source)

    def start_import(self, urls: Iterable[str]) -> list[EnqueuedImport]:
        return [self.enqueue(url) for url in urls]

    def import_all(
        self,
        *,
        jitter: bool = True,
        source: str | None = None,
        category: str | None = None,
    ) -> list[EnqueuedImport]:
        """One task per registry endpoint, each delayed by a random 0..jitter_seconds."""
        endpoints: list[Endpoint]
        if source:
            endpoints = self.registry.for_source(source)
        elif category:
            endpoints = self.registry.for_category(category)
        else:
            endpoints = self.registry.endpoints()
        LOG.info("Auto importing from %d endpoint(s)", len(endpoints))

        queued = []
        for endpoint in endpoints:
            delay = self._rng() * self.jitter_seconds if jitter else 0.0
            queued.append(self.enqueue(endpoint.url, delay=delay))
        return queued

    # ---- consuming work ---------------------------------------------------

    def process_task(self, task: ClaimedTask) -> None:
        run_id = task.import_run_id
        try:
            self.ledger.mark_processing(run_id)
        except JobFeedError as e:
            LOG.error("Task %s cannot start: %s", task.task_id, e)
            self.queue.fail(task.task_id, str(e))
            return
        except Exception as e:
            LOG.exception("Task %s could not mark run %s processing", task.task_id, run_id)
            self._fetch_failed(task, f"{type(e).__name__}: {e}")
            return

        endpoint = self.registry.resolve(task.feed_url)
        try:
            feed = self.fetcher.fetch(endpoint)
        except FeedError as e:
            self._fetch_failed(task, str(e))
            return
        except Exception as e:
            LOG.exception("Unexpected error fetching %s", endpoint.url)
            self._fetch_failed(task, f"{type(e).__name__}: {e}")
            return

        # past this point the task is never retried
        try:
            self.ledger.record_fetched(run_id, feed.total_items, feed.skipped)
            run = self.upserter.process(run_id, feed.records)
        except Exception as e:
            LOG.exception("Import run %s aborted after fetch", run_id)
            self.queue.fail(task.task_id, str(e))
            try:
                self.ledger.fail(run_id, str(e))
            except LedgerStateError:
                pass  # already terminal
            return

        self.queue.complete(task.task_id, {
            "totalFetched": feed.total_items,
            "totalImported": run.total_imported,
            "newJobs": run.new_jobs,
            "updatedJobs": run.updated_jobs,
            "failedJobs": run.failed_jobs,
        })

    def _fetch_failed(self, task: ClaimedTask, message: str) -> None:
        delay = self.queue.retry_or_fail(task.task_id, message)
        if delay is not None:
            LOG.warning(
                "Attempt %d/%d of run %s failed: %s; retrying in %.0fs",
                task.attempt, task.max_attempts, task.import_run_id, message, delay,
            )
            return
        LOG.error("Run %s failed after %d attempt(s): %s", task.import_run_id, task.attempt, message)
        try:
            self.ledger.fail(task.import_run_id, message)
        except LedgerStateError:
            pass  # already terminal
