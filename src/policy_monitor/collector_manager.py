"""Source aggregator: runs every connector concurrently and merges their output."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .collector import BaseCollector
from .logging_config import get_logger
from .models import (
    CollectionResult,
    CollectorError,
    CollectorManagerResult,
    CollectorStats,
    RawDocument,
)

logger = get_logger("collector_manager")


class SourceAggregator:
    """Fan out to all connectors and collect whatever succeeded.

    One connector failing, or even raising despite its own guard, never
    suppresses the documents of the others. Documents are concatenated in
    connector order; deduplication happens per connector and later at the
    record level, not here.
    """

    def __init__(self, collectors: Optional[List[BaseCollector]] = None) -> None:
        self.collectors = collectors or []

    def register(self, collector: BaseCollector) -> None:
        if collector not in self.collectors:
            self.collectors.append(collector)
            logger.info(f"Registered collector: {collector.name}")

    async def fetch_all(self, days_back: Optional[int] = None) -> List[RawDocument]:
        """Return the documents of every connector that succeeded."""
        result = await self.collect_all(days_back)
        return result.documents

    async def collect_all(
        self,
        days_back: Optional[int] = None,
        *,
        skip_disabled: bool = True,
    ) -> CollectorManagerResult:
        """Execute all registered collectors concurrently.

        Args:
            days_back: Publication window handed to each collector
            skip_disabled: If True, skip collectors with enabled=False

        Returns:
            CollectorManagerResult with merged documents and error summaries
        """
        active_collectors = [c for c in self.collectors if not skip_disabled or c.enabled]

        if not active_collectors:
            logger.warning("No active collectors to run")
            return CollectorManagerResult(documents=[], errors=[], stats={}, success=True)

        logger.info(f"Starting collection with {len(active_collectors)} collectors")
        results = await self._collect_all_concurrent(active_collectors, days_back)

        all_documents: List[RawDocument] = []
        all_errors: List[CollectorError] = []
        all_stats: Dict[str, CollectorStats] = {}
        counts: Dict[str, int] = {}
        overall_success = True

        for result in results:
            all_documents.extend(result.documents)
            counts[result.collector_name] = result.document_count
            if result.stats:
                all_stats[result.collector_name] = result.stats
                all_errors.extend(result.stats.errors)
            if not result.success:
                overall_success = False

        for name, count in counts.items():
            logger.info(f"{name}: {count} documents")
        logger.info(
            f"Collection completed: {len(all_documents)} documents, "
            f"{len(all_errors)} errors, {len(active_collectors)} collectors"
        )

        if all_errors:
            logger.warning(f"Collection had {len(all_errors)} errors:")
            for error in all_errors[:10]:
                logger.warning(f"  - {error.collector_name}: {error.error_type} - {error.message}")
            if len(all_errors) > 10:
                logger.warning(f"  ... and {len(all_errors) - 10} more errors")

        return CollectorManagerResult(
            documents=all_documents,
            errors=all_errors,
            stats=all_stats,
            success=overall_success,
            counts=counts,
        )

    async def _collect_all_concurrent(
        self,
        collectors: Sequence[BaseCollector],
        days_back: Optional[int],
    ) -> List[CollectionResult]:
        """Run all collectors concurrently, turning raised exceptions into failed results."""
        results = await asyncio.gather(
            *(collector.collect(days_back) for collector in collectors),
            return_exceptions=True,
        )

        processed: List[CollectionResult] = []
        for collector, result in zip(collectors, results):
            if isinstance(result, BaseException):
                logger.error(f"Collector {collector.name} raised exception: {result}")
                now = datetime.now(timezone.utc)
                stats = CollectorStats(collector_name=collector.name, started_at=now, completed_at=now)
                stats.add_error(
                    CollectorError(
                        collector_name=collector.name,
                        error_type=type(result).__name__,
                        message=str(result),
                    )
                )
                processed.append(
                    CollectionResult(
                        collector_name=collector.name,
                        documents=[],
                        stats=stats,
                        success=False,
                        error_message=str(result),
                    )
                )
            else:
                processed.append(result)
        return processed
