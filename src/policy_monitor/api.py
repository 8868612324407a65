"""FastAPI trigger and status interface.

Run with:
    uvicorn src.policy_monitor.api:create_app --factory --port 8000

Or via the CLI:
    python -m src.policy_monitor.runner serve
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .config import MonitorSettings
from .logging_config import get_logger
from .processor import PolicyProcessor

logger = get_logger("api")

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or type(exc).__name__, "timestamp": _timestamp()},
    )


def get_processor(request: Request) -> PolicyProcessor:
    return request.app.state.processor


def get_app_settings(request: Request) -> MonitorSettings:
    return request.app.state.settings


Processor = Annotated[PolicyProcessor, Depends(get_processor)]
AppSettings = Annotated[MonitorSettings, Depends(get_app_settings)]


async def verify_cron_secret(
    settings: AppSettings,
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Scheduled trigger gate: ``Authorization: Bearer <CRON_SECRET>``."""
    secret = settings.cron_secret
    if not secret or authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


async def verify_manual_access(
    settings: AppSettings,
    admin_key: Annotated[Optional[str], Query()] = None,
) -> None:
    """Manual trigger gate: open in development, otherwise ``admin_key`` must match."""
    if settings.is_development:
        return
    if not settings.admin_key or admin_key != settings.admin_key:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized - manual collection not allowed in production",
        )


@router.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "healthy", "timestamp": _timestamp()}


@router.post("/api/collect-policies", dependencies=[Depends(verify_cron_secret)])
async def collect_policies(processor: Processor):
    logger.info("Starting automated policy collection...")
    try:
        result = await processor.process_latest_policies(trigger="scheduled")
        rescan = await processor.update_existing_policies()
        stats = await processor.get_processing_stats()
    except Exception as exc:
        logger.exception(f"Policy collection error: {exc}")
        return _failure(exc)

    response = {
        "success": True,
        "timestamp": _timestamp(),
        "result": result.to_dict(),
        "rescan": rescan.to_dict(),
        "stats": stats,
        "message": (
            f"Processed {result.processed} documents, added {result.added} new policies, "
            f"found {result.duplicates} duplicates"
        ),
    }
    logger.info(f"Policy collection completed: {response['message']}")
    return response


@router.get("/api/collect-policies", dependencies=[Depends(verify_manual_access)])
async def collect_policies_manual(
    processor: Processor,
    settings: AppSettings,
    days_back: Annotated[Optional[int], Query(ge=1, le=365)] = None,
):
    if days_back is None:
        days_back = settings.default_days_back
    logger.info(f"Manual policy collection triggered ({days_back} days back)")
    try:
        result = await processor.process_latest_policies(days_back, trigger="manual")
        stats = await processor.get_processing_stats()
    except Exception as exc:
        logger.exception(f"Manual policy collection error: {exc}")
        return _failure(exc)

    return {
        "success": True,
        "timestamp": _timestamp(),
        "result": result.to_dict(),
        "stats": stats,
        "message": "Manual collection completed",
    }


@router.get("/api/collection-status")
async def collection_status(processor: Processor):
    try:
        return await processor.get_collection_status()
    except Exception as exc:
        logger.exception(f"Status endpoint error: {exc}")
        return _failure(exc)


def create_app(
    settings: Optional[MonitorSettings] = None,
    processor: Optional[PolicyProcessor] = None,
) -> FastAPI:
    """Application factory.

    When no processor is supplied, one is built from ``settings`` at startup
    and closed again on shutdown.
    """
    settings = settings or MonitorSettings.from_env()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        owned = None
        if getattr(application.state, "processor", None) is None:
            from .runner import build_processor

            owned = build_processor(settings)
            application.state.processor = owned
        logger.info(f"Policy monitor API started (environment={settings.environment})")
        try:
            yield
        finally:
            if owned is not None:
                close = getattr(owned.extractor.llm, "close", None)
                if close is not None:
                    await close()
                application.state.processor = None

    application = FastAPI(
        title="AI Policy Monitor API",
        description="Trigger and status endpoints for the AI policy ingestion pipeline",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.processor = processor
    application.include_router(router)
    return application
