from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from jobfeed.db import init_db, make_engine, make_session_factory
from jobfeed.registry import EndpointRegistry
from jobfeed.services.fetcher import FeedFetcher
from jobfeed.services.ingest import ImportService
from jobfeed.services.ledger import ImportLedger
from jobfeed.services.queue import WorkQueue
from jobfeed.services.upsert import UpsertEngine

JOBICY_URL = "https://jobicy.com/?feed=job_feed"
HIGHERED_URL = "https://www.higheredjobs.com/rss/articleFeed.cfm"


# ---- RSS builders -------------------------------------------------------------


def rss_item(title="Backend Engineer", link="https://jobicy.com/jobs/1", guid=None, **tags) -> str:
    parts = []
    if title is not None:
        parts.append(f"<title>{title}</title>")
    if link is not None:
        parts.append(f"<link>{link}</link>")
    if guid is not None:
        parts.append(f"<guid>{guid}</guid>")
    for tag, value in tags.items():
        tag = tag.replace("__", ":")  # job_listing__company -> job_listing:company
        parts.append(f"<{tag}>{value}</{tag}>")
    return "<item>" + "".join(parts) + "</item>"


def rss_doc(*items: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:job_listing="https://jobicy.com/ns" '
        'xmlns:he="https://www.higheredjobs.com/ns" xmlns:dc="http://purl.org/dc/elements/1.1/">'
        "<channel><title>Jobs</title><link>https://example.com</link>"
        + "".join(items)
        + "</channel></rss>"
    )


def numbered_items(n: int, host: str = "https://jobicy.com") -> list[str]:
    return [rss_item(title=f"Job {i}", link=f"{host}/jobs/{i}", guid=f"job-{i}") for i in range(n)]


# ---- fakes --------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FeedServer:
    """httpx MockTransport handler serving canned responses per URL."""

    def __init__(self):
        self.responses: dict[str, list[tuple[int, str]]] = {}
        self.requests: list[httpx.Request] = []

    def serve(self, url: str, *responses) -> None:
        """Each response is an RSS string (200), a status code, or a (status, body) pair."""
        out = []
        for r in responses:
            if isinstance(r, int):
                out.append((r, "error"))
            elif isinstance(r, tuple):
                out.append(r)
            else:
                out.append((200, r))
        self.responses[url] = out

    def calls(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.responses.get(str(request.url))
        if not queued:
            return httpx.Response(404, text="not found")
        # last response repeats
        status, body = queued.pop(0) if len(queued) > 1 else queued[0]
        headers = {"content-type": "application/rss+xml"}
        if isinstance(body, bytes):
            return httpx.Response(status, content=body, headers=headers)
        return httpx.Response(status, text=body, headers=headers)


# ---- fixtures -------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'jobs.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def ledger(session_factory, clock):
    return ImportLedger(session_factory, clock=clock)


@pytest.fixture
def queue(session_factory, clock):
    return WorkQueue(session_factory, clock=clock)


@pytest.fixture
def feeds():
    return FeedServer()


@pytest.fixture
def fetcher(feeds):
    client = httpx.Client(transport=httpx.MockTransport(feeds))
    yield FeedFetcher(client=client)
    client.close()


@pytest.fixture
def upserter(session_factory, ledger, clock):
    return UpsertEngine(session_factory, ledger, clock=clock)


@pytest.fixture
def service(ledger, queue, fetcher, upserter):
    return ImportService(
        registry=EndpointRegistry(),
        ledger=ledger,
        queue=queue,
        fetcher=fetcher,
        upserter=upserter,
        rng=lambda: 0.5,
    )
