"""
Health check and operational endpoints
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config.settings import settings
from src.services.shared_services import get_ip_range_cache

router = APIRouter()
logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for monitoring
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "timestamp": _now(),
            "version": "1.0.0",
            "service": "github-webhook-gatekeeper",
        },
        status_code=200,
    )


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """
    Readiness check endpoint for deployment
    """
    checks = {
        "webhook_secret": bool(settings.GITHUB_WEBHOOK_SECRET),
        "allowed_owners": bool(settings.allowed_owners_set),
    }
    all_ready = all(checks.values())

    cache = get_ip_range_cache()
    return JSONResponse(
        content={
            "ready": all_ready,
            "checks": checks,
            "ip_validation": settings.WEBHOOK_IP_VALIDATION,
            "ip_ranges_cached": len(cache.snapshot.ranges),
            "timestamp": _now(),
        },
        status_code=200 if all_ready else 503,
    )


@router.post("/ip-ranges/invalidate")
async def invalidate_ip_ranges() -> JSONResponse:
    """
    Drop cached GitHub hook ranges so the next delivery refetches them
    """
    get_ip_range_cache().invalidate()
    logger.info("IP range cache invalidated via API")
    return JSONResponse(content={"status": "invalidated", "timestamp": _now()})
