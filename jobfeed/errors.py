from __future__ import annotations

from dataclasses import dataclass


class JobFeedError(Exception):
    """Base exception for feed import failures."""


class FeedError(JobFeedError):
    """A feed could not be turned into items. Retried at task level."""


class FetchError(FeedError):
    """Network failure, timeout, non-2xx status, empty or non-XML body."""


class ParseError(FeedError):
    """Malformed XML or a document without rss/channel."""


class ItemExtractionError(JobFeedError):
    """A single feed item is missing required fields; the item is dropped."""


@dataclass(eq=False)
class PersistenceError(JobFeedError):
    """A single posting could not be written."""

    external_id: str
    detail: str

    def __str__(self) -> str:
        return f"failed to persist posting '{self.external_id}': {self.detail}"


class LedgerStateError(JobFeedError):
    """An import run was mutated after reaching a terminal status."""


class RunNotFoundError(JobFeedError, LookupError):
    """No import run with the requested id."""
