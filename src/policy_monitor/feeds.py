"""RSS and Atom parsing built on feedparser.

Feeds arrive in two shapes. RSS puts entries in ``<item>`` elements with a text
``<link>`` and a ``<pubDate>``; Atom uses ``<entry>`` with ``<link href=.../>``
and ``<published>``/``<updated>``. feedparser reads both; its output is then
split by feed version into its own small record type and only then mapped onto
``RawDocument``, so nothing downstream has to care which one a publisher serves.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Union

import feedparser

from .logging_config import get_logger
from .models import RawDocument, SourceInfo
from .parser_utils import contains_ai_terms, html_to_text, normalize_publish_date

logger = get_logger("feeds")


@dataclass(frozen=True)
class RssItem:
    title: str
    link: str
    description: str
    pub_date: Optional[str] = None
    guid: Optional[str] = None


@dataclass(frozen=True)
class AtomEntry:
    title: str
    link: str
    summary: str
    content: str = ""
    published: Optional[str] = None
    updated: Optional[str] = None
    entry_id: Optional[str] = None


FeedEntry = Union[RssItem, AtomEntry]


def _field(entry: Any, name: str) -> str:
    return (entry.get(name) or "").strip()


def _content(entry: Any) -> str:
    parts = [(part.get("value") or "").strip() for part in entry.get("content") or []]
    return "\n\n".join(part for part in parts if part)


def _link(entry: Any, identifier: Optional[str]) -> str:
    link = _field(entry, "link")
    if not link and identifier and identifier.startswith("http"):
        link = identifier
    return link


def _rss_item(entry: Any) -> RssItem:
    guid = _field(entry, "id") or None
    return RssItem(
        title=_field(entry, "title"),
        link=_link(entry, guid),
        description=_field(entry, "summary") or _content(entry),
        pub_date=_field(entry, "published") or _field(entry, "updated") or None,
        guid=guid,
    )


def _atom_entry(entry: Any) -> AtomEntry:
    entry_id = _field(entry, "id") or None
    return AtomEntry(
        title=_field(entry, "title"),
        link=_link(entry, entry_id),
        summary=_field(entry, "summary"),
        content=_content(entry),
        published=_field(entry, "published") or None,
        updated=_field(entry, "updated") or None,
        entry_id=entry_id,
    )


def entries_from_parsed(parsed: feedparser.FeedParserDict) -> List[FeedEntry]:
    """Split a feedparser result into RSS items or Atom entries by feed version."""
    if parsed.get("bozo") and not parsed.get("entries"):
        logger.debug(f"Unparseable feed: {parsed.get('bozo_exception')}")
        return []
    build = _atom_entry if (parsed.get("version") or "").startswith("atom") else _rss_item
    return [build(entry) for entry in parsed.get("entries", [])]


def parse_feed(payload: Union[str, bytes]) -> List[FeedEntry]:
    """Parse raw feed text into RSS items or Atom entries."""
    return entries_from_parsed(feedparser.parse(payload))


async def parse_feed_text(payload: Union[str, bytes]) -> List[FeedEntry]:
    """Parse feed text in a worker thread."""
    return await asyncio.to_thread(parse_feed, payload)


def _published_at(value: Optional[str]) -> str:
    if value:
        try:
            normalized = normalize_publish_date(value)
            if normalized:
                return normalized
        except (ValueError, OverflowError) as exc:
            logger.debug("Unparseable feed date %r: %s", value, exc)
    return normalize_publish_date(datetime.now(timezone.utc))


def to_raw_document(entry: FeedEntry, source: SourceInfo) -> RawDocument:
    """Map either feed shape onto a RawDocument."""
    if isinstance(entry, RssItem):
        description = html_to_text(entry.description)
        return RawDocument(
            title=html_to_text(entry.title),
            description=description,
            content=description,
            url=entry.link,
            published_at=_published_at(entry.pub_date),
            source=source,
        )

    description = html_to_text(entry.summary or entry.content)
    content = html_to_text(entry.content) or description
    return RawDocument(
        title=html_to_text(entry.title),
        description=description,
        content=content,
        url=entry.link,
        published_at=_published_at(entry.published or entry.updated),
        source=source,
    )


def documents_from_entries(
    entries: Sequence[FeedEntry],
    source: SourceInfo,
    *,
    max_entries: int = 10,
) -> List[RawDocument]:
    """Keep the AI-relevant entries among the first ``max_entries``."""
    documents: List[RawDocument] = []
    for entry in entries[:max_entries]:
        document = to_raw_document(entry, source)
        if not document.title or not document.url:
            continue
        if not contains_ai_terms(document.title, document.description):
            continue
        documents.append(document)
    return documents


async def documents_from_feed(
    payload: Union[str, bytes],
    source: SourceInfo,
    *,
    max_entries: int = 10,
) -> List[RawDocument]:
    """Parse a feed and map its AI-relevant entries onto documents."""
    entries = await parse_feed_text(payload)
    return documents_from_entries(entries, source, max_entries=max_entries)
