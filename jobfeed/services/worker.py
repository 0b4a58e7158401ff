from __future__ import annotations

import logging
import threading
from typing import Callable

from .queue import ClaimedTask, WorkQueue

LOG = logging.getLogger(__name__)


class WorkerPool:
    """Fixed number of threads, each claiming and running one task at a time."""

    def __init__(
        self,
        queue: WorkQueue,
        handler: Callable[[ClaimedTask], None],
        concurrency: int = 2,
        poll_interval: float = 1.0,
    ) -> None:
        self._queue = queue
        self._handler = handler
        self.concurrency = max(1, concurrency)
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._loop, name=f"import-worker-{i + 1}", daemon=True)
            for i in range(self.concurrency)
        ]
        for t in self._threads:
            t.start()
        LOG.info("Started %d import worker(s)", self.concurrency)

    def stop(self, timeout: float | None = None) -> None:
        """Stop pulling tasks; in-flight tasks run to completion."""
        self._stop.set()
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = []
        LOG.info("Import workers stopped")

    def run_once(self) -> bool:
        """Claim and run one due task; False when nothing was due."""
        task = self._queue.claim_next()
        if task is None:
            return False
        LOG.info(
            "Processing task %s (run %s, attempt %d/%d): %s",
            task.task_id, task.import_run_id, task.attempt, task.max_attempts, task.feed_url,
        )
        try:
            self._handler(task)
        except Exception as e:
            # a claimed task must not be left active
            LOG.exception("Worker error on task %s", task.task_id)
            self._queue.retry_or_fail(task.task_id, f"{type(e).__name__}: {e}")
        return True

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                worked = self.run_once()
            except Exception:
                LOG.exception("Worker error")
                worked = False
            if not worked:
                self._stop.wait(self.poll_interval)
