"""Policy monitor pipeline runner.

Builds the pipeline components once from ``MonitorSettings`` and exposes them
through a small CLI: collect new policies, rescan stored ones, print stats, or
serve the HTTP trigger interface.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .collector_manager import SourceAggregator
from .config import MonitorSettings, SourcesConfig
from .database import PolicyDatabase
from .extraction import ExtractionEngine
from .gateway import PolicyGateway
from .llm_client import LLMClient, OpenAIChatClient
from .logging_config import get_logger, setup_logging
from .models import CollectorConfig
from .processor import PolicyProcessor
from .rate_limit import IntervalRateLimiter
from .sources import FederalRegisterCollector, FeedCollector

logger = get_logger("runner")


def _collector_config(name: str, settings: MonitorSettings, enabled: bool = True) -> CollectorConfig:
    return CollectorConfig(
        name=name,
        enabled=enabled,
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
    )


def build_aggregator(settings: MonitorSettings, sources: Optional[SourcesConfig] = None) -> SourceAggregator:
    sources = sources or SourcesConfig(settings.sources_path)
    search = sources.get_search_api()

    collectors: List[Any] = [
        FederalRegisterCollector(
            search,
            _collector_config("Federal Register", settings, enabled=search.enabled),
            rate_limiter=IntervalRateLimiter(settings.search_delay_seconds),
        )
    ]
    for family in sources.get_enabled_feed_families():
        collectors.append(
            FeedCollector(family, _collector_config(family.source_name, settings))
        )
    return SourceAggregator(collectors)


def build_processor(
    settings: MonitorSettings,
    *,
    sources: Optional[SourcesConfig] = None,
    llm: Optional[LLMClient] = None,
    database: Optional[PolicyDatabase] = None,
) -> PolicyProcessor:
    """Wire every pipeline component from one settings object."""
    extractor = ExtractionEngine(
        llm or OpenAIChatClient.from_settings(settings),
        confidence_threshold=settings.confidence_threshold,
        max_document_chars=settings.max_document_chars,
    )
    return PolicyProcessor(
        build_aggregator(settings, sources),
        extractor,
        PolicyGateway(database or PolicyDatabase(settings.db_path)),
        ingestion_limiter=IntervalRateLimiter(settings.ingestion_delay_seconds),
        rescan_limiter=IntervalRateLimiter(settings.rescan_delay_seconds),
        default_days_back=settings.default_days_back,
        rescan_recent_days=settings.rescan_recent_days,
        rescan_match_limit=settings.rescan_match_limit,
        next_collection=settings.next_collection,
    )


async def run_collect(processor: PolicyProcessor, days_back: Optional[int], skip_rescan: bool) -> Dict[str, Any]:
    result = await processor.process_latest_policies(days_back, trigger="cli")
    summary: Dict[str, Any] = {"result": result.to_dict()}
    if not skip_rescan:
        summary["rescan"] = (await processor.update_existing_policies()).to_dict()
    summary["stats"] = await processor.get_processing_stats()
    return summary


async def run_rescan(processor: PolicyProcessor) -> Dict[str, Any]:
    return {"rescan": (await processor.update_existing_policies()).to_dict()}


async def run_stats(processor: PolicyProcessor) -> Dict[str, Any]:
    return await processor.get_collection_status()


def _print_summary(summary: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(summary, indent=2, default=str))
        return
    result = summary.get("result")
    if result:
        logger.info(
            f"Processed {result['processed']} documents: {result['added']} added, "
            f"{result['duplicates']} duplicates, {result['errors']} errors"
        )
    rescan = summary.get("rescan")
    if rescan:
        logger.info(
            f"Rescan: {rescan['checked']} checked, {rescan['matched_documents']} matches, "
            f"{rescan['updated']} updated, {rescan['errors']} errors"
        )
    stats = summary.get("stats")
    if stats:
        logger.info(
            f"Store: {stats['total']} policies, {stats['added_today']} added today, "
            f"{stats['added_this_week']} this week, last update {stats['last_update']}"
        )


class _NoModel:
    """Stand-in model client for commands that only read the store."""

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        raise RuntimeError("model client not configured for this command")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the policy monitor."""
    parser = argparse.ArgumentParser(
        description="AI policy monitor - collects government publications and extracts AI policy records"
    )
    parser.add_argument("--db-path", type=Path, help="Path to policy database (default: database/policy_monitor.db)")
    parser.add_argument("--sources", type=Path, help="Path to sources YAML (default: config/policy_sources.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Output summary as JSON")

    subparsers = parser.add_subparsers(dest="command", required=True)

    collect = subparsers.add_parser("collect", help="Collect and store new policies")
    collect.add_argument("--days-back", type=int, default=None, help="Publication window in days (default: 7)")
    collect.add_argument("--skip-rescan", action="store_true", help="Do not rescan stored policies afterwards")

    subparsers.add_parser("rescan", help="Re-check stored policies for updates")
    subparsers.add_parser("stats", help="Print store statistics and collection status")

    serve = subparsers.add_parser("serve", help="Serve the HTTP trigger interface")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    settings = MonitorSettings.from_env()
    if args.db_path:
        settings.db_path = args.db_path
    if args.sources:
        settings.sources_path = args.sources

    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO)
    setup_logging(log_dir=settings.log_dir, level=level, console=not args.json)

    if args.command == "serve":
        import uvicorn

        from .api import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return 0

    try:
        if args.command == "stats":
            processor = build_processor(settings, llm=_NoModel())
            summary = asyncio.run(run_stats(processor))
        else:
            processor = build_processor(settings)
            if args.command == "collect":
                summary = asyncio.run(run_collect(processor, args.days_back, args.skip_rescan))
            else:
                summary = asyncio.run(run_rescan(processor))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1

    _print_summary(summary, args.json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
