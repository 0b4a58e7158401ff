from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..clock import utcnow
from ..models import QueueTask, TASK_ACTIVE, TASK_COMPLETED, TASK_FAILED, TASK_WAITING
from ..schemas import QueueStatus

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimedTask:
    task_id: str
    feed_url: str
    import_run_id: int
    attempt: int
    max_attempts: int
    scheduled_delay: int  # ms

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


class WorkQueue:
    """Durable task queue on top of the `queue_tasks` table.

    Tasks become eligible at ``run_at``. Claiming is a conditional UPDATE
    (waiting -> active), so a task is handed to at most one worker even when
    several poll at once. Failed attempts are rescheduled with exponential
    backoff: ``backoff_seconds * 2 ** (attempts_made - 1)``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 5.0,
        keep_completed: int = 50,
        keep_failed: int = 50,
        clock=utcnow,
    ):
        self._session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._keep = {TASK_COMPLETED: keep_completed, TASK_FAILED: keep_failed}
        self._clock = clock

    def backoff(self, attempts_made: int) -> float:
        return self.backoff_seconds * (2 ** max(0, attempts_made - 1))

    def enqueue(self, feed_url: str, import_run_id: int, delay: float = 0.0) -> str:
        now = self._clock()
        delay = max(0.0, delay)
        task = QueueTask(
            id=str(uuid.uuid4()),
            feed_url=feed_url,
            import_run_id=import_run_id,
            state=TASK_WAITING,
            attempts_made=0,
            max_attempts=self.max_attempts,
            scheduled_delay=int(delay * 1000),
            run_at=now + timedelta(seconds=delay),
            created_at=now,
        )
        with self._session_factory() as db:
            db.add(task)
            db.commit()
        LOG.debug("Queued task %s for run %s (delay %.1fs)", task.id, import_run_id, delay)
        return task.id

    def claim_next(self) -> ClaimedTask | None:
        now = self._clock()
        with self._session_factory() as db:
            due = (
                db.query(QueueTask.id)
                .filter(QueueTask.state == TASK_WAITING, QueueTask.run_at <= now)
                .order_by(QueueTask.run_at, QueueTask.created_at)
                .limit(5)
                .all()
            )
            for (task_id,) in due:
                claimed = (
                    db.query(QueueTask)
                    .filter(QueueTask.id == task_id, QueueTask.state == TASK_WAITING)
                    .update(
                        {
                            QueueTask.state: TASK_ACTIVE,
                            QueueTask.attempts_made: QueueTask.attempts_made + 1,
                            QueueTask.started_at: now,
                        },
                        synchronize_session=False,
                    )
                )
                db.commit()
                if claimed != 1:
                    continue  # another worker got it first
                task = db.get(QueueTask, task_id)
                return ClaimedTask(
                    task_id=task.id,
                    feed_url=task.feed_url,
                    import_run_id=task.import_run_id,
                    attempt=task.attempts_made,
                    max_attempts=task.max_attempts,
                    scheduled_delay=task.scheduled_delay,
                )
        return None

    def complete(self, task_id: str, result: dict | None = None) -> None:
        with self._session_factory() as db:
            task = db.get(QueueTask, task_id)
            task.state = TASK_COMPLETED
            task.result = result
            task.finished_at = self._clock()
            db.flush()
            self._evict(db, TASK_COMPLETED)
            db.commit()

    def retry_or_fail(self, task_id: str, error: str) -> float | None:
        """Reschedule after a failed attempt; returns the delay, or None once attempts are spent."""
        with self._session_factory() as db:
            task = db.get(QueueTask, task_id)
            task.last_error = error
            if task.attempts_made < task.max_attempts:
                delay = self.backoff(task.attempts_made)
                task.state = TASK_WAITING
                task.scheduled_delay = int(delay * 1000)
                task.run_at = self._clock() + timedelta(seconds=delay)
                db.commit()
                return delay
            task.state = TASK_FAILED
            task.finished_at = self._clock()
            db.flush()
            self._evict(db, TASK_FAILED)
            db.commit()
            return None

    def fail(self, task_id: str, error: str) -> None:
        """Fail without retrying."""
        with self._session_factory() as db:
            task = db.get(QueueTask, task_id)
            task.last_error = error
            task.state = TASK_FAILED
            task.finished_at = self._clock()
            db.flush()
            self._evict(db, TASK_FAILED)
            db.commit()

    def requeue_stalled(self) -> int:
        """Put tasks left active by a dead process back in line (run once at startup)."""
        with self._session_factory() as db:
            n = (
                db.query(QueueTask)
                .filter(QueueTask.state == TASK_ACTIVE)
                .update({QueueTask.state: TASK_WAITING, QueueTask.run_at: self._clock()}, synchronize_session=False)
            )
            db.commit()
        if n:
            LOG.warning("Requeued %d stalled task(s)", n)
        return n

    def get(self, task_id: str) -> QueueTask | None:
        with self._session_factory() as db:
            return db.get(QueueTask, task_id)

    def status(self) -> QueueStatus:
        with self._session_factory() as db:
            rows = db.query(QueueTask.state, func.count(QueueTask.id)).group_by(QueueTask.state).all()
        counts = {state: n for state, n in rows}
        st = QueueStatus(
            waiting=counts.get(TASK_WAITING, 0),
            active=counts.get(TASK_ACTIVE, 0),
            completed=counts.get(TASK_COMPLETED, 0),
            failed=counts.get(TASK_FAILED, 0),
        )
        st.total = st.waiting + st.active + st.completed + st.failed
        return st

    def _evict(self, db: Session, state: str) -> None:
        keep = self._keep[state]
        stale = (
            db.query(QueueTask.id)
            .filter(QueueTask.state == state)
            .order_by(QueueTask.finished_at.desc(), QueueTask.created_at.desc())
            .offset(keep)
            .all()
        )
        if stale:
            db.query(QueueTask).filter(QueueTask.id.in_([i for (i,) in stale])).delete(synchronize_session=False)
