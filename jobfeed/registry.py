"""Catalogue of the feed endpoints imported on every scheduled sweep."""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, asdict
from typing import Iterable

_CATEGORY_RE = re.compile(r"job_categories=([^&]+)")


@dataclass(frozen=True)
class Endpoint:
    name: str
    url: str
    source: str
    description: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint("jobicy-general", "https://jobicy.com/?feed=job_feed", "jobicy", "General job feed"),
    Endpoint(
        "jobicy-smm-fulltime",
        "https://jobicy.com/?feed=job_feed&job_categories=smm&job_types=full-time",
        "jobicy",
        "Social Media Marketing full-time jobs",
    ),
    Endpoint(
        "jobicy-seller-france",
        "https://jobicy.com/?feed=job_feed&job_categories=seller&job_types=full-time&search_region=france",
        "jobicy",
        "Sales jobs in France",
    ),
    Endpoint(
        "jobicy-design",
        "https://jobicy.com/?feed=job_feed&job_categories=design-multimedia",
        "jobicy",
        "Design and multimedia jobs",
    ),
    Endpoint(
        "jobicy-data-science",
        "https://jobicy.com/?feed=job_feed&job_categories=data-science",
        "jobicy",
        "Data science jobs",
    ),
    Endpoint(
        "jobicy-copywriting",
        "https://jobicy.com/?feed=job_feed&job_categories=copywriting",
        "jobicy",
        "Copywriting jobs",
    ),
    Endpoint(
        "jobicy-business",
        "https://jobicy.com/?feed=job_feed&job_categories=business",
        "jobicy",
        "Business jobs",
    ),
    Endpoint(
        "jobicy-management",
        "https://jobicy.com/?feed=job_feed&job_categories=management",
        "jobicy",
        "Management jobs",
    ),
    Endpoint(
        "higher-ed-jobs",
        "https://www.higheredjobs.com/rss/articleFeed.cfm",
        "higheredjobs",
        "Higher education jobs",
    ),
)


def infer_source(url: str) -> str:
    u = (url or "").lower()
    if "jobicy.com" in u:
        return "jobicy"
    if "higheredjobs.com" in u:
        return "higheredjobs"
    return "other"


def _uniq(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for it in items:
        if it not in seen:
            seen.add(it)
            out.append(it)
    return out


class EndpointRegistry:
    def __init__(self, endpoints: Iterable[Endpoint] = DEFAULT_ENDPOINTS):
        self._endpoints = tuple(endpoints)
        self._by_url = {e.url: e for e in self._endpoints}

    def endpoints(self) -> list[Endpoint]:
        return list(self._endpoints)

    def sources(self) -> list[str]:
        return _uniq(e.source for e in self._endpoints)

    def categories(self) -> list[str]:
        found = [_CATEGORY_RE.search(e.url) for e in self._endpoints]
        return _uniq(m.group(1) for m in found if m)

    def counts_by_source(self) -> dict[str, int]:
        return dict(Counter(e.source for e in self._endpoints))

    def for_source(self, source: str) -> list[Endpoint]:
        return [e for e in self._endpoints if e.source == source]

    def for_category(self, category: str) -> list[Endpoint]:
        c = category.lower()
        return [e for e in self._endpoints if c in e.description.lower() or c in e.url]

    def resolve(self, url: str) -> Endpoint:
        """Catalogue entry for ``url``, or an ad hoc endpoint named after its source."""
        known = self._by_url.get(url)
        if known:
            return known
        source = infer_source(url)
        return Endpoint(name=source, url=url, source=source)
