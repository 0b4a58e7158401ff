from __future__ import annotations

import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

LOG = logging.getLogger(__name__)

_WS = re.compile(r"\s+")

_JOB_TYPES = {
    "fulltime": "full-time",
    "full": "full-time",
    "permanent": "full-time",
    "parttime": "part-time",
    "part": "part-time",
    "contract": "contract",
    "contractor": "contract",
    "temporary": "contract",
    "temp": "contract",
    "freelance": "freelance",
    "freelancer": "freelance",
    "internship": "internship",
    "intern": "internship",
}

_REMOTE = re.compile(r"\b(remote|anywhere|worldwide|work\s+from\s+home)\b", re.I)


def collapse_ws(text: str | None) -> str:
    return _WS.sub(" ", text or "").strip()


def clean_html(raw: str | None) -> str:
    """HTML fragment -> plain readable text on a single line."""
    if not raw:
        return ""
    if "<" not in raw:
        return collapse_ws(html.unescape(raw))
    soup = BeautifulSoup(raw, "html.parser")
    for bad in soup(["script", "style", "noscript", "svg", "img"]):
        bad.decompose()
    return collapse_ws(soup.get_text(" "))


def short_text(text: str, limit: int = 200) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0].rstrip(",.;:")
    return f"{cut}..."


def parse_date(value: str | None) -> datetime | None:
    """RFC 822, ISO 8601 or anything dateutil understands; None when unparsable."""
    if not value or not value.strip():
        return None
    value = value.strip()
    dt = None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass
    if dt is None:
        try:
            dt = date_parser.parse(value)
        except (ValueError, OverflowError):
            LOG.debug("unparsable date %r", value)
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_job_type(raw: str | None, default: str = "full-time") -> str:
    if not raw:
        return default
    key = re.sub(r"[\s_\-]+", "", raw.strip().lower())
    if key in _JOB_TYPES:
        return _JOB_TYPES[key]
    for token in re.split(r"[\s,/_\-]+", raw.lower()):
        if token in _JOB_TYPES:
            return _JOB_TYPES[token]
    return default


def looks_remote(*texts: str | None) -> bool:
    return any(_REMOTE.search(t or "") for t in texts)
