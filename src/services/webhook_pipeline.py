"""
Webhook ingress pipeline: shape checks, owner authorization, signature
verification and optional source IP validation
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import structlog

from .owner_authorizer import OwnerAuthorizer, OwnerDecisionStatus
from .source_ip_validator import SourceIpValidator
from src.models.webhook import WebhookRequest
from src.utils.webhook_validator import validate_github_webhook

logger = structlog.get_logger()


class WebhookRejectedError(Exception):
    """Base class for deliveries refused by the pipeline"""

    status_code = 400

    def __init__(self, reason: str, delivery_id: Optional[str] = None):
        self.reason = reason
        self.delivery_id = delivery_id
        super().__init__(reason)


class WebhookShapeError(WebhookRejectedError):
    """A required header, body or payload field is absent or unparseable"""

    status_code = 400


class WebhookAuthenticityError(WebhookRejectedError):
    status_code = 401


class WebhookAuthorizationError(WebhookRejectedError):
    status_code = 403


class WebhookSourceError(WebhookRejectedError):
    status_code = 403


@dataclass(frozen=True)
class VerifiedWebhook:
    event: str
    delivery_id: str
    payload: Dict[str, Any]
    owner: str


class WebhookPipeline:
    """Decides whether an inbound delivery may be dispatched"""

    def __init__(
        self,
        secret: str,
        allowed_owners: Iterable[str],
        source_validator: Optional[SourceIpValidator] = None,
    ):
        if not secret:
            raise ValueError("Webhook secret is required")
        self.secret = secret
        self.owner_authorizer = OwnerAuthorizer(allowed_owners)
        self.source_validator = source_validator

    async def verify(self, request: WebhookRequest) -> VerifiedWebhook:
        """
        Run every check for one delivery

        The owner check completes before the signature is verified and the
        signature is verified before anything is returned for dispatch. The
        source IP check, when enabled, runs concurrently with both.

        Raises:
            WebhookRejectedError: subclass describing why the delivery was refused
        """
        delivery_id = request.delivery_id

        if not request.signature or not request.event or not delivery_id:
            logger.error(
                "Missing required webhook headers",
                has_signature=bool(request.signature),
                has_event=bool(request.event),
                has_delivery=bool(delivery_id),
            )
            raise WebhookShapeError("Missing required webhook headers", delivery_id)

        if not request.raw_body:
            raise WebhookShapeError("Missing raw body for verification", delivery_id)

        source_check: Optional[asyncio.Task] = None
        if self.source_validator is not None:
            source_check = asyncio.ensure_future(self.source_validator.is_allowed(request.client_ip))

        try:
            payload = self._parse_payload(request)

            decision = self.owner_authorizer.check_payload(payload)
            if decision.status == OwnerDecisionStatus.MISSING_OWNER:
                raise WebhookShapeError(decision.reason, delivery_id)
            if decision.status == OwnerDecisionStatus.DENIED:
                raise WebhookAuthorizationError(decision.reason, delivery_id)

            if not validate_github_webhook(request.raw_body, request.signature, self.secret):
                raise WebhookAuthenticityError("Invalid webhook signature", delivery_id)

            if source_check is not None and not await source_check:
                logger.warning("Rejected delivery from unexpected source", delivery_id=delivery_id, ip=request.client_ip)
                raise WebhookSourceError("Request did not originate from GitHub", delivery_id)

        except WebhookRejectedError as e:
            if source_check is not None and not source_check.done():
                source_check.cancel()
            logger.warning(
                "Webhook rejected",
                delivery_id=delivery_id,
                event_type=request.event,
                reason=e.reason,
                status_code=e.status_code,
            )
            raise

        logger.info("Webhook verified", delivery_id=delivery_id, event_type=request.event, owner=decision.owner)
        return VerifiedWebhook(
            event=request.event,
            delivery_id=delivery_id,
            payload=payload,
            owner=decision.owner,
        )

    @staticmethod
    def _parse_payload(request: WebhookRequest) -> Dict[str, Any]:
        try:
            payload = json.loads(request.raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error("Error parsing webhook payload", delivery_id=request.delivery_id, error=str(e))
            raise WebhookShapeError("Invalid JSON payload", request.delivery_id) from e

        if not isinstance(payload, dict):
            raise WebhookShapeError("Invalid JSON payload", request.delivery_id)
        return payload
