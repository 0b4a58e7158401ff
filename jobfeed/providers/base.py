from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

class RawItem(dict):
    # tag (namespace prefix kept, e.g. "jobicy:company") -> list of text values, document order
    pass

# tags consumed by the common extractor; never copied into `extra`
COMMON_TAGS = frozenset({
    "title", "description", "summary", "content", "content:encoded",
    "link", "guid", "pubDate", "published", "dc:date",
    "category", "author", "dc:creator",
})

# keys a source table may emit that land on the posting itself; everything else goes to `extra`
RECORD_KEYS = frozenset({"company", "location", "job_type", "salary", "company_url", "tags"})

_TAG_SPLIT = re.compile(r"[,;|]")


def first_text(item: Mapping[str, list[str]], *tags: str) -> str:
    for tag in tags:
        for value in item.get(tag) or ():
            if value and value.strip():
                return value.strip()
    return ""


def split_tags(values: list[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        out.extend(t.strip() for t in _TAG_SPLIT.split(v or "") if t.strip())
    return out


@dataclass(frozen=True)
class SourceFields:
    """Declarative extraction table for one feed provider.

    ``text_fields`` maps an output key to the raw tags that may carry it, first
    match wins. ``list_fields`` collects every value of the first tag present
    and splits it into a tag list. With ``copy_unknown`` every tag outside
    COMMON_TAGS is copied verbatim.
    """

    source: str
    text_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    list_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    copy_unknown: bool = False

    def extract(self, item: RawItem) -> dict:
        out: dict = {}
        for key, tags in self.text_fields.items():
            value = first_text(item, *tags)
            if value:
                out[key] = value
        for key, tags in self.list_fields.items():
            for tag in tags:
                if item.get(tag):
                    out[key] = split_tags(item[tag])
                    break
        if self.copy_unknown:
            for tag, values in item.items():
                if tag in COMMON_TAGS or tag in out:
                    continue
                value = first_text(item, tag)
                if value:
                    out[tag] = value
        return out


DEFAULT_FIELDS = SourceFields(source="other", copy_unknown=True)

_TABLES: dict[str, SourceFields] = {}


def register(table: SourceFields) -> SourceFields:
    _TABLES[table.source] = table
    return table


def fields_for(source: str) -> SourceFields:
    # import side effect registers the known provider tables
    from . import higheredjobs, jobicy  # noqa: F401

    return _TABLES.get(source, DEFAULT_FIELDS)
