from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON, Index
from sqlalchemy.sql import func
from .clock import utcnow
from .db import Base

SOURCES = ("jobicy", "higheredjobs", "other")
JOB_TYPES = ("full-time", "part-time", "contract", "freelance", "internship")

RUN_PENDING = "pending"
RUN_PROCESSING = "processing"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"
RUN_TERMINAL = (RUN_COMPLETED, RUN_FAILED)

TASK_WAITING = "waiting"
TASK_ACTIVE = "active"
TASK_COMPLETED = "completed"
TASK_FAILED = "failed"


class JobPosting(Base):
    __tablename__ = "job_postings"
    id = Column(Integer, primary_key=True)
    external_id = Column(String(1000), nullable=False, unique=True)
    job_id = Column(String(64), nullable=False)
    title = Column(String(500), nullable=False)
    company = Column(String(300))
    location = Column(String(300))
    description = Column(Text)
    short_description = Column(String(300))
    category = Column(String(200))
    job_type = Column(String(20), default="full-time")
    salary = Column(String(200))
    application_url = Column(String(1000))
    company_url = Column(String(1000))
    requirements = Column(JSON, default=list)
    benefits = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    extra = Column(JSON, default=dict)
    remote = Column(Boolean, default=False)
    source = Column(String(50), nullable=False, index=True)
    source_url = Column(String(1000), nullable=False)
    source_name = Column(String(200))
    author = Column(String(300))
    published_date = Column(DateTime(timezone=True))
    last_updated = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_job_postings_category_job_type", "category", "job_type"),
    )


class ImportRun(Base):
    __tablename__ = "import_runs"
    id = Column(Integer, primary_key=True)
    source = Column(String(50), nullable=False, index=True)
    source_url = Column(String(1000), nullable=False)
    status = Column(String(20), nullable=False, default=RUN_PENDING, index=True)
    total_fetched = Column(Integer, nullable=False, default=0)
    total_imported = Column(Integer, nullable=False, default=0)
    new_jobs = Column(Integer, nullable=False, default=0)
    updated_jobs = Column(Integer, nullable=False, default=0)
    failed_jobs = Column(Integer, nullable=False, default=0)
    skipped_jobs = Column(Integer, nullable=False, default=0)
    failed_jobs_details = Column(JSON, nullable=False, default=list)
    attempts = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    duration = Column(Integer)  # ms
    error_message = Column(Text)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class QueueTask(Base):
    __tablename__ = "queue_tasks"
    id = Column(String(36), primary_key=True)
    feed_url = Column(String(1000), nullable=False)
    import_run_id = Column(Integer, nullable=False, index=True)
    state = Column(String(20), nullable=False, default=TASK_WAITING)
    attempts_made = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    scheduled_delay = Column(Integer, nullable=False, default=0)  # ms
    run_at = Column(DateTime(timezone=True), nullable=False)
    last_error = Column(Text)
    result = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_queue_tasks_state_run_at", "state", "run_at"),
    )


Index("ix_job_postings_published_date", JobPosting.published_date.desc())
Index("ix_import_runs_created_at", ImportRun.created_at.desc())
