from __future__ import annotations

import logging
import traceback
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..clock import utcnow
from ..errors import PersistenceError
from ..models import JobPosting
from ..schemas import FailedJobDetail, ImportRunOut, ImportStats, JobRecord
from .ledger import ImportLedger

LOG = logging.getLogger(__name__)


class UpsertEngine:
    """Insert-or-update postings keyed by external id and account the run.

    Postings are written one transaction each, in feed order, so one bad record
    only costs itself.
    """

    def __init__(self, session_factory: Callable[[], Session], ledger: ImportLedger, clock=utcnow):
        self._session_factory = session_factory
        self._ledger = ledger
        self._clock = clock

    def upsert(self, record: JobRecord) -> bool:
        """Write one posting; True when it was inserted, False when updated.

        Losing an insert race on ``external_id`` to another task retries once as
        an update, so the later writer wins.
        """
        try:
            try:
                return self._write(record)
            except IntegrityError:
                LOG.info("Posting %s was inserted concurrently; updating instead", record.external_id)
                return self._write(record)
        except SQLAlchemyError as e:
            raise PersistenceError(record.external_id, str(e.orig if getattr(e, "orig", None) else e)) from e

    def _write(self, record: JobRecord) -> bool:
        with self._session_factory() as db:
            try:
                existing = db.query(JobPosting).filter(JobPosting.external_id == record.external_id).first()
                values = record.model_dump()
                values["last_updated"] = self._clock()
                if existing is not None:
                    for key, value in values.items():
                        setattr(existing, key, value)
                    created = False
                else:
                    db.add(JobPosting(**values))
                    created = True
                db.commit()
                return created
            except SQLAlchemyError:
                db.rollback()
                raise

    def process(self, run_id: int, records: Iterable[JobRecord]) -> ImportRunOut:
        stats = ImportStats()
        for record in records:
            try:
                created = self.upsert(record)
            except PersistenceError as e:
                stats.failed_jobs += 1
                stats.failed_jobs_details.append(FailedJobDetail(
                    item_id=record.external_id,
                    reason=e.detail,
                    error="".join(traceback.format_exception(e)),
                ))
                LOG.error("Failed to store posting %r (%s): %s", record.title, record.external_id, e.detail)
                continue
            if created:
                stats.new_jobs += 1
            else:
                stats.updated_jobs += 1
            stats.total_imported += 1
        return self._ledger.complete(run_id, stats)
