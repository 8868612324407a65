"""Base collector implementation for policy source connectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from .http_client import HTTPClient
from .logging_config import get_logger
from .models import (
    CollectionResult,
    CollectorConfig,
    CollectorError,
    CollectorStats,
    RawDocument,
    SourceInfo,
    SourceType,
)

logger = get_logger("collector")


class BaseCollector(ABC):
    """Abstract base class for all source connectors.

    Provides HTTP fetching with retry, stats tracking and the guarantee that
    ``collect`` never raises: any failure is logged, recorded in the stats and
    turned into an empty, unsuccessful ``CollectionResult``. Subclasses only
    implement ``_collect_documents``.
    """

    source_type: SourceType

    def __init__(
        self,
        config: Optional[CollectorConfig] = None,
        *,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        """Initialize collector with configuration.

        Args:
            config: Collector configuration with timeout and retry settings
            http_client: Client to fetch with; built from ``config`` when omitted
        """
        self.config = config or CollectorConfig(name=self.__class__.__name__)
        self.http_client = http_client or HTTPClient(config=self.config)
        self.logger = get_logger(self.config.name)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def source_info(self) -> SourceInfo:
        return SourceInfo(name=self.name, type=self.source_type)

    async def collect(self, days_back: Optional[int] = None) -> CollectionResult:
        """Fetch documents published within the last ``days_back`` days.

        ``None`` means no window restriction for sources that support one.
        """
        stats = CollectorStats(collector_name=self.name, started_at=datetime.now(timezone.utc))

        try:
            self.logger.info(f"Starting collection for {self.name}")
            documents = await self._collect_documents(stats, days_back)
            documents = [doc for doc in documents if doc.title and doc.url]
            stats.records_collected = len(documents)
            stats.completed_at = datetime.now(timezone.utc)
            duration = stats.duration_seconds or 0.0

            self.logger.info(
                f"Collection completed for {self.name}: "
                f"{stats.records_collected} documents, "
                f"{stats.records_failed} failures, "
                f"{stats.retry_attempts} retries, "
                f"{duration:.2f}s"
            )

            return CollectionResult(
                collector_name=self.name,
                documents=documents,
                stats=stats,
                success=True,
            )

        except Exception as exc:
            self.logger.exception(f"Collection failed for {self.name}: {exc}")
            stats.completed_at = datetime.now(timezone.utc)
            stats.add_error(
                CollectorError(
                    collector_name=self.name,
                    error_type=type(exc).__name__,
                    message=str(exc),
                )
            )
            return CollectionResult(
                collector_name=self.name,
                documents=[],
                stats=stats,
                success=False,
                error_message=str(exc),
            )

    @abstractmethod
    async def _collect_documents(
        self, stats: CollectorStats, days_back: Optional[int]
    ) -> List[RawDocument]:
        """Collect documents from the source.

        Args:
            stats: Stats object to update during collection
            days_back: Publication window in days, or None for no window

        Returns:
            Documents collected, possibly empty
        """

    async def fetch_text(self, url: str, stats: CollectorStats) -> Optional[str]:
        """Fetch a URL, recording failures in ``stats`` instead of raising."""
        try:
            response = await self.http_client.get_async(url, stats=stats)
            return response.text
        except Exception as exc:
            stats.add_error(
                CollectorError(
                    collector_name=self.name,
                    error_type=type(exc).__name__,
                    message=str(exc),
                    url=url,
                )
            )
            self.logger.error(f"Failed to fetch {url}: {exc}")
            return None
