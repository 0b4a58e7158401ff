from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .clock import as_utc

Source = Literal["jobicy", "higheredjobs", "other"]
JobType = Literal["full-time", "part-time", "contract", "freelance", "internship"]
RunStatus = Literal["pending", "processing", "completed", "failed"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class JobRecord(CamelModel):
    """Canonical posting as produced by the fetcher and consumed by the upsert engine."""

    external_id: str = Field(min_length=1)
    job_id: str
    title: str = Field(min_length=1)
    company: str = "Unknown"
    location: Optional[str] = None
    description: str = ""
    short_description: str = ""
    category: str = "General"
    job_type: JobType = "full-time"
    salary: Optional[str] = None
    application_url: str
    company_url: Optional[str] = None
    requirements: List[str] = []
    benefits: List[str] = []
    tags: List[str] = []
    extra: dict[str, Any] = {}
    remote: bool = False
    author: str = "Unknown"
    source: Source
    source_url: str
    source_name: Optional[str] = None
    published_date: Optional[datetime] = None
    is_active: bool = True

    @field_validator("title", "external_id", "application_url")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class FailedJobDetail(CamelModel):
    item_id: Optional[str] = None
    reason: str
    error: Optional[str] = None


class ImportStats(CamelModel):
    total_imported: int = 0
    new_jobs: int = 0
    updated_jobs: int = 0
    failed_jobs: int = 0
    failed_jobs_details: List[FailedJobDetail] = []


class ImportRunOut(CamelModel):
    id: int
    source: Source
    source_url: str
    status: RunStatus
    total_fetched: int = 0
    total_imported: int = 0
    new_jobs: int = 0
    updated_jobs: int = 0
    failed_jobs: int = 0
    skipped_jobs: int = 0
    failed_jobs_details: List[FailedJobDetail] = []
    attempts: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ImportHistory(BaseModel):
    logs: List[ImportRunOut]
    pagination: Pagination


class EnqueuedImport(CamelModel):
    job_id: str
    import_log_id: int
    url: str
    source: Source


class QueueStatus(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class StartImportIn(BaseModel):
    urls: Optional[List[str]] = None


class AutoImportIn(BaseModel):
    source: Optional[str] = None
    category: Optional[str] = None


class Envelope(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
