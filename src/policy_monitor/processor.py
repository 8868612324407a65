"""Ingestion pipeline and update scanner.

``PolicyProcessor`` drives aggregator -> extraction -> normalizer -> gateway for
new documents, and re-checks stored policies against freshly fetched documents
for material changes. All collaborators are passed in; nothing is built here.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from rapidfuzz import fuzz

from .collector_manager import SourceAggregator
from .database import PolicyDatabase
from .extraction import ExtractionEngine
from .gateway import PolicyGateway
from .logging_config import get_logger
from .models import PolicyRecord, ProcessingResult, RawDocument, RescanSummary
from .normalization import normalize_record
from .rate_limit import NoopRateLimiter, RateLimiter

logger = get_logger("processor")

SIGNIFICANT_FIELDS = ("status", "date_enacted", "key_provisions", "penalties_fines")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_z(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def has_significant_changes(stored: PolicyRecord, candidate: PolicyRecord) -> bool:
    """True if any significant field changed to a different non-null value."""
    for name in SIGNIFICANT_FIELDS:
        new_value = getattr(candidate, name)
        if new_value is not None and new_value != getattr(stored, name):
            return True
    return False


def document_text(document: RawDocument) -> str:
    """Text sent for extraction during ingestion."""
    if document.content and document.content.strip():
        return document.content
    return "\n\n".join(part for part in (document.title, document.description) if part)


def rescan_text(document: RawDocument) -> str:
    return "\n\n".join(
        part for part in (document.title, document.description, document.content) if part
    )


class PolicyProcessor:
    """Runs ingestion and rescans over injected components."""

    def __init__(
        self,
        aggregator: SourceAggregator,
        extractor: ExtractionEngine,
        gateway: PolicyGateway,
        *,
        ingestion_limiter: Optional[RateLimiter] = None,
        rescan_limiter: Optional[RateLimiter] = None,
        default_days_back: int = 7,
        rescan_recent_days: int = 30,
        rescan_match_limit: int = 3,
        next_collection: str = "Daily at 6:00 AM UTC",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.aggregator = aggregator
        self.extractor = extractor
        self.gateway = gateway
        self.ingestion_limiter = ingestion_limiter or NoopRateLimiter()
        self.rescan_limiter = rescan_limiter or NoopRateLimiter()
        self.default_days_back = default_days_back
        self.rescan_recent_days = rescan_recent_days
        self.rescan_match_limit = rescan_match_limit
        self.next_collection = next_collection
        self.clock = clock

    @property
    def database(self) -> PolicyDatabase:
        return self.gateway.database

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    async def process_latest_policies(
        self,
        days_back: Optional[int] = None,
        *,
        trigger: str = "manual",
    ) -> ProcessingResult:
        """Fetch recent documents and store the new policies found in them.

        Per-document failures are absorbed into the counters. A failure before
        any document is handled (the aggregator itself raising) propagates.
        """
        days_back = self.default_days_back if days_back is None else days_back
        logger.info(f"Starting policy processing ({days_back} days back, trigger={trigger})")
        run_id = await self._start_run(trigger, {"days_back": days_back})

        try:
            documents = await self.aggregator.fetch_all(days_back)
            logger.info(f"Found {len(documents)} government documents to process")
            result = await self.process_documents(documents)
        except Exception as exc:
            logger.exception(f"Policy processing failed: {exc}")
            await self._complete_run(run_id, "failed", None, {"error": str(exc)})
            raise

        logger.info(
            f"Policy processing completed: {result.processed} processed, {result.added} added, "
            f"{result.duplicates} duplicates, {result.errors} errors"
        )
        await self._complete_run(run_id, "completed", result, None)
        return result

    async def process_documents(self, documents: Sequence[RawDocument]) -> ProcessingResult:
        result = ProcessingResult()
        for document in documents:
            result.processed += 1
            try:
                await self._process_document(document, result)
            except Exception as exc:
                result.errors += 1
                logger.error(f"Error processing document {document.title!r}: {exc}")
        return result

    async def _process_document(self, document: RawDocument, result: ProcessingResult) -> None:
        await self.ingestion_limiter.wait()
        extracted = await self.extractor.extract(document_text(document), document.url)
        if extracted is None:
            logger.info(f"No policy extracted from: {document.title}")
            return

        record = normalize_record(extracted)
        if await self.gateway.is_duplicate(record):
            result.duplicates += 1
            logger.info(f"Duplicate policy found: {record.policy_name}")
            return

        await self.gateway.insert(record)
        result.added += 1
        logger.info(f"Added new policy: {record.policy_name}")

    # ------------------------------------------------------------------
    # Update scanner
    # ------------------------------------------------------------------
    async def update_existing_policies(self) -> RescanSummary:
        """Re-extract stored policies from current documents and apply material changes."""
        summary = RescanSummary()
        logger.info("Checking for policy updates...")

        now = self.clock()
        try:
            candidates = await asyncio.to_thread(
                self.database.get_reviewable_policies,
                _iso_z(now - timedelta(days=self.rescan_recent_days)),
                now.date().isoformat(),
            )
        except sqlite3.Error as exc:
            logger.error(f"Error fetching existing policies: {exc}")
            summary.errors += 1
            return summary

        if not candidates:
            logger.info("No policies due for an update check")
            return summary

        try:
            documents = await self.aggregator.fetch_all(None)
        except Exception as exc:
            logger.error(f"Error searching for policy updates: {exc}")
            summary.errors += 1
            return summary

        logger.info(f"Rescanning {len(candidates)} policies against {len(documents)} documents")

        for stored in candidates:
            summary.checked += 1
            await self.rescan_limiter.wait()
            try:
                summary.updated += await self._rescan_policy(stored, documents, summary)
            except Exception as exc:
                summary.errors += 1
                logger.error(f"Error updating policy {stored.policy_name!r}: {exc}")

        logger.info(
            f"Rescan completed: {summary.checked} checked, {summary.matched_documents} matches, "
            f"{summary.updated} updated, {summary.errors} errors"
        )
        return summary

    async def _rescan_policy(
        self,
        stored: PolicyRecord,
        documents: Sequence[RawDocument],
        summary: RescanSummary,
    ) -> int:
        matches = self.find_policy_mentions(stored.policy_name, documents)
        summary.matched_documents += len(matches)
        updated = 0
        for document in matches:
            extracted = await self.extractor.extract(rescan_text(document), document.url)
            if extracted is None:
                continue
            candidate = normalize_record(extracted)
            if not has_significant_changes(stored, candidate):
                continue
            await self.gateway.update(stored.id, candidate, today=self.clock().date())
            logger.info(f"Updated policy: {stored.policy_name}")
            updated += 1
        return updated

    def find_policy_mentions(
        self, policy_name: str, documents: Sequence[RawDocument]
    ) -> List[RawDocument]:
        """Documents mentioning ``policy_name``, best title match first."""
        needle = policy_name.lower().strip()
        if not needle:
            return []
        matches = [
            document
            for document in documents
            if needle in document.title.lower() or needle in document.content.lower()
        ]
        matches.sort(key=lambda doc: fuzz.partial_ratio(needle, doc.title.lower()), reverse=True)
        return matches[: self.rescan_match_limit]

    # ------------------------------------------------------------------
    # Stats and status
    # ------------------------------------------------------------------
    async def get_processing_stats(self) -> Optional[Dict[str, Any]]:
        now = self.clock()
        today = now.date()
        try:
            return await asyncio.to_thread(
                self.database.get_processing_stats,
                f"{today.isoformat()}T00:00:00Z",
                f"{(today - timedelta(days=7)).isoformat()}T00:00:00Z",
            )
        except sqlite3.Error as exc:
            logger.error(f"Error getting processing stats: {exc}")
            return None

    async def get_collection_status(self) -> Dict[str, Any]:
        """Recent policies, distributions and health fields for the status endpoint."""
        stats = await self.get_processing_stats()
        database_status = "connected"
        recent: List[Dict[str, Any]] = []
        distributions: Dict[str, Dict[str, int]] = {"status": {}, "risk": {}}
        last_run: Optional[Dict[str, Any]] = None

        try:
            recent = await asyncio.to_thread(self.database.get_recent_policies, 10)
            distributions["status"] = await asyncio.to_thread(
                self.database.get_field_distribution, "status"
            )
            distributions["risk"] = await asyncio.to_thread(
                self.database.get_field_distribution, "risk_classification"
            )
            last_run = await asyncio.to_thread(self.database.get_last_ingestion_run)
        except sqlite3.Error as exc:
            logger.error(f"Error reading collection status: {exc}")
            database_status = "error"

        last_collection = None
        if last_run:
            last_collection = last_run.get("completed_at") or last_run.get("started_at")
        elif stats:
            last_collection = stats.get("last_update")

        return {
            "success": True,
            "timestamp": _iso_z(self.clock()),
            "stats": stats,
            "recent_policies": recent,
            "distributions": distributions,
            "system_status": {
                "database": database_status,
                "last_collection": last_collection,
                "next_collection": self.next_collection,
            },
        }

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------
    async def _start_run(self, trigger: str, metadata: Dict[str, Any]) -> Optional[int]:
        try:
            return await asyncio.to_thread(self.database.start_ingestion_run, trigger, metadata)
        except sqlite3.Error as exc:
            logger.warning(f"Could not record ingestion run start: {exc}")
            return None

    async def _complete_run(
        self,
        run_id: Optional[int],
        status: str,
        result: Optional[ProcessingResult],
        metadata: Optional[Dict[str, Any]],
    ) -> None:
        if run_id is None:
            return
        try:
            await asyncio.to_thread(
                self.database.complete_ingestion_run,
                run_id,
                status=status,
                result=result,
                metadata=metadata,
            )
        except sqlite3.Error as exc:
            logger.warning(f"Could not record ingestion run {run_id} completion: {exc}")
