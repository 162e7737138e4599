"""
GitHub webhook endpoint
"""

import structlog
from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import JSONResponse

from config.settings import settings
from src.models.webhook import WebhookRequest
from src.services.event_router import EventRouter
from src.services.shared_services import get_event_router, get_webhook_pipeline
from src.services.webhook_pipeline import (
    VerifiedWebhook,
    WebhookPipeline,
    WebhookRejectedError,
)
from src.utils.ip_utils import get_client_ip

router = APIRouter()
logger = structlog.get_logger()


async def verify_webhook(
    request: Request,
    pipeline: WebhookPipeline = Depends(get_webhook_pipeline),
) -> VerifiedWebhook:
    """Run the ingress pipeline on the untouched request body"""
    body = await request.body()
    client_ip = get_client_ip(request, trust_proxy=settings.TRUST_PROXY)
    webhook_request, missing = WebhookRequest.from_headers(request.headers, body, client_ip)

    logger.info(
        "Received GitHub webhook",
        event_type=webhook_request.event,
        delivery_id=webhook_request.delivery_id,
        payload_bytes=len(body),
        client_ip=client_ip,
    )
    if missing:
        logger.error("Missing required webhook headers", missing=missing)

    try:
        return await pipeline.verify(webhook_request)
    except WebhookRejectedError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)


@router.post("")
async def github_webhook(
    verified: VerifiedWebhook = Depends(verify_webhook),
    event_router: EventRouter = Depends(get_event_router),
) -> JSONResponse:
    """
    Accept a verified GitHub delivery and dispatch it to event handlers
    """
    try:
        # Drop delivery ids older than the dedup window
        await event_router.cleanup_event_cache()

        result = await event_router.route_event(verified.event, verified.payload, verified.delivery_id)
    except Exception as e:
        # The delivery itself was valid; handler failures stay internal
        logger.error(
            "Webhook processing failed",
            event_type=verified.event,
            delivery_id=verified.delivery_id,
            error=str(e)
        )
        result = {"status": "error"}

    logger.info(
        "Webhook verified and processed",
        event_type=verified.event,
        delivery_id=verified.delivery_id,
        status=result.get("status"),
    )
    return JSONResponse(
        content={
            "message": "Webhook received",
            "event": verified.event,
            "delivery_id": verified.delivery_id,
            "status": result.get("status"),
        },
        status_code=200,
    )
