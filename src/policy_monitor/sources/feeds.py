"""RSS/Atom feed connectors for the White House, Congress, the EU and agencies."""

from __future__ import annotations

from typing import List, Optional

from ..collector import BaseCollector
from ..config import DEFAULT_FEED_FAMILIES, FeedFamilyConfig, SourcesConfig
from ..feeds import documents_from_feed
from ..http_client import HTTPClient
from ..models import CollectorConfig, CollectorError, CollectorStats, RawDocument, SourceInfo


class FeedCollector(BaseCollector):
    """Collect AI-relevant entries from one family of feeds.

    Each feed is fetched and parsed on its own; a feed that fails to download
    or parse is recorded in the stats and skipped.
    """

    def __init__(
        self,
        family: FeedFamilyConfig,
        config: Optional[CollectorConfig] = None,
        *,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        super().__init__(
            config or CollectorConfig(name=family.source_name, enabled=family.enabled),
            http_client=http_client,
        )
        self.family = family
        self.source_type = family.source_type

    @property
    def feed_urls(self) -> List[str]:
        return [feed.url for feed in self.family.feeds]

    async def _collect_documents(
        self, stats: CollectorStats, days_back: Optional[int]
    ) -> List[RawDocument]:
        documents: List[RawDocument] = []
        for feed in self.family.feeds:
            payload = await self.fetch_text(feed.url, stats)
            if payload is None:
                continue
            source = SourceInfo(name=feed.name, type=self.source_type)
            try:
                found = await documents_from_feed(
                    payload, source, max_entries=self.family.max_entries_per_feed
                )
            except Exception as exc:
                stats.add_error(
                    CollectorError(
                        collector_name=self.name,
                        error_type=type(exc).__name__,
                        message=str(exc),
                        url=feed.url,
                    )
                )
                self.logger.error(f"Failed to parse feed {feed.url}: {exc}")
                continue
            self.logger.debug(f"{feed.url}: {len(found)} AI-relevant entries")
            documents.extend(found)
        return documents


def _family(family_id: str, sources: Optional[SourcesConfig]) -> FeedFamilyConfig:
    if sources is not None:
        family = sources.get_feed_family(family_id)
        if family is not None:
            return family
    return FeedFamilyConfig.from_dict(family_id, DEFAULT_FEED_FAMILIES[family_id], 10)


def white_house_collector(sources: Optional[SourcesConfig] = None, **kwargs) -> FeedCollector:
    return FeedCollector(_family("white_house", sources), **kwargs)


def congress_collector(sources: Optional[SourcesConfig] = None, **kwargs) -> FeedCollector:
    return FeedCollector(_family("congress", sources), **kwargs)


def eu_commission_collector(sources: Optional[SourcesConfig] = None, **kwargs) -> FeedCollector:
    return FeedCollector(_family("eu_commission", sources), **kwargs)


def agency_collector(sources: Optional[SourcesConfig] = None, **kwargs) -> FeedCollector:
    return FeedCollector(_family("agency_rss", sources), **kwargs)
