from __future__ import annotations

import logging
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import httpx
from pydantic import ValidationError

from ..errors import FetchError, ItemExtractionError, ParseError
from ..providers.base import RECORD_KEYS, RawItem, SourceFields, fields_for, first_text
from ..registry import Endpoint
from ..schemas import JobRecord
from .normalize import clean_html, looks_remote, normalize_job_type, parse_date, short_text

LOG = logging.getLogger(__name__)

MIN_TIMEOUT = 30.0

# some providers answer 403 to clients without a browser UA
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "application/xml, text/xml, application/rss+xml, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


@dataclass
class FeedResult:
    endpoint: Endpoint
    records: list[JobRecord] = field(default_factory=list)
    total_items: int = 0
    skipped: int = 0


class FeedFetcher:
    """GET an RSS feed and turn its items into JobRecords."""

    def __init__(self, timeout: float = MIN_TIMEOUT, client: httpx.Client | None = None):
        self.timeout = max(float(timeout), MIN_TIMEOUT)
        self._client = client

    def fetch(self, endpoint: Endpoint) -> FeedResult:
        LOG.info("Fetching %s (%s)", endpoint.name, endpoint.url)
        body = self._get(endpoint)
        items = parse_feed(body)
        result = normalize_items(items, endpoint)
        LOG.info(
            "Parsed %d item(s) from %s: %d usable, %d skipped",
            result.total_items, endpoint.name, len(result.records), result.skipped,
        )
        return result

    def _get(self, endpoint: Endpoint) -> bytes:
        try:
            if self._client is not None:
                r = self._client.get(endpoint.url, headers=BROWSER_HEADERS, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    r = client.get(endpoint.url, headers=BROWSER_HEADERS)
        except httpx.HTTPError as e:
            raise FetchError(f"{endpoint.name}: {type(e).__name__}: {e}") from e

        if not r.is_success:
            raise FetchError(f"{endpoint.name}: HTTP {r.status_code} from {endpoint.url}")
        # raw bytes, so the parser honors the encoding declared in the document
        body = r.content
        if not body or not body.strip():
            raise FetchError(f"{endpoint.name}: empty response")
        if b"<rss" not in body and b"<?xml" not in body:
            LOG.error("Non-XML response from %s: %r", endpoint.name, body[:200])
            raise FetchError(f"{endpoint.name}: response is not XML")
        return body


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def _qualified(tag: str, prefixes: dict[str, str]) -> str:
    if not tag.startswith("{"):
        return tag
    uri, local = tag[1:].split("}", 1)
    prefix = prefixes.get(uri)
    return f"{prefix}:{local}" if prefix else local


def _value(el: ET.Element) -> str:
    text = "".join(el.itertext()).strip()
    if text:
        return text
    return el.get("href") or el.get("url") or ""


def parse_feed(text: str | bytes) -> list[RawItem]:
    """Parse an RSS document into raw items.

    Tags keep the prefix the document declared for their namespace, so
    ``<jobicy:company>`` stays ``"jobicy:company"``. Every tag maps to a list of
    values even when it occurs once, and the result is a list even for a
    single <item>. Whitespace before the XML declaration is tolerated.
    """
    parser = ET.XMLPullParser(events=("start-ns", "start"))
    try:
        parser.feed(text.lstrip())
        parser.close()
    except ET.ParseError as e:
        raise ParseError(f"malformed XML: {e}") from e

    prefixes: dict[str, str] = {}
    root = None
    for event, payload in parser.read_events():
        if event == "start-ns":
            prefix, uri = payload
            prefixes.setdefault(uri, prefix)
        elif root is None:
            root = payload

    if root is None or _local(root.tag) != "rss":
        raise ParseError("invalid RSS structure: missing rss")
    channel = next((c for c in root if _local(c.tag) == "channel"), None)
    if channel is None:
        raise ParseError("invalid RSS structure: missing channel")

    items: list[RawItem] = []
    for node in channel:
        if _local(node.tag) != "item":
            continue
        raw = RawItem()
        for child in node:
            raw.setdefault(_qualified(child.tag, prefixes), []).append(_value(child))
        items.append(raw)
    return items


def normalize_items(items: list[RawItem], endpoint: Endpoint) -> FeedResult:
    table = fields_for(endpoint.source)
    result = FeedResult(endpoint=endpoint, total_items=len(items))
    for raw in items:
        try:
            result.records.append(build_record(raw, endpoint, table))
        except ItemExtractionError as e:
            result.skipped += 1
            LOG.warning("Skipping item from %s: %s", endpoint.name, e)
        except Exception:
            result.skipped += 1
            LOG.exception("Failed to normalize item from %s: %r", endpoint.name, dict(raw))
    return result


def build_record(raw: RawItem, endpoint: Endpoint, table: SourceFields) -> JobRecord:
    title = first_text(raw, "title")
    link = first_text(raw, "link", "guid")
    if not title or not link:
        missing = " and ".join(n for n, v in (("title", title), ("link", link)) if not v)
        raise ItemExtractionError(f"missing {missing}")

    description = clean_html(first_text(raw, "description", "summary", "content", "content:encoded"))
    fields = table.extract(raw)
    extra = {k: v for k, v in fields.items() if k not in RECORD_KEYS}
    location = fields.get("location")

    try:
        return JobRecord(
            external_id=first_text(raw, "guid") or link,
            job_id=uuid.uuid4().hex,
            title=title,
            company=fields.get("company") or fields.get("institution") or "Unknown",
            location=location,
            description=description,
            short_description=short_text(description),
            category=first_text(raw, "category") or "General",
            job_type=normalize_job_type(fields.get("job_type")),
            salary=fields.get("salary"),
            application_url=link,
            company_url=fields.get("company_url"),
            tags=fields.get("tags") or [],
            extra=extra,
            remote=looks_remote(location, title),
            author=first_text(raw, "author", "dc:creator") or "Unknown",
            source=endpoint.source,
            source_url=endpoint.url,
            source_name=endpoint.name,
            published_date=parse_date(first_text(raw, "pubDate", "published", "dc:date")),
        )
    except ValidationError as e:
        raise ItemExtractionError(f"invalid item '{title}': {e.error_count()} validation error(s)") from e
