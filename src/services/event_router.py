"""
GitHub event routing for verified webhook deliveries
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from .github_client import GitHubClient
from src.models.webhook import extract_repo_info

logger = structlog.get_logger()

EventHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class EventRouter:
    """Routes verified GitHub events to registered handlers"""

    def __init__(self, register_defaults: bool = True, github_client: Optional[GitHubClient] = None):
        # Outbound client for handlers that call back to GitHub
        self.github_client = github_client
        self.handlers: Dict[str, List[EventHandler]] = defaultdict(list)

        # Delivery deduplication (GitHub redelivers on timeouts)
        self.event_cache: Dict[str, datetime] = {}
        self.dedup_window = timedelta(minutes=5)

        if register_defaults:
            self._register_default_handlers()

    def on(self, key: str) -> Callable[[EventHandler], EventHandler]:
        """Register a handler for ``event`` or ``event.action``"""

        def decorator(handler: EventHandler) -> EventHandler:
            self.handlers[key].append(handler)
            return handler

        return decorator

    def _matching_handlers(self, event_type: str, payload: Dict[str, Any]) -> List[EventHandler]:
        keys = [event_type]
        action = payload.get("action")
        if action:
            keys.append(f"{event_type}.{action}")
        return [handler for key in keys for handler in self.handlers.get(key, [])]

    async def route_event(
        self, event_type: str, payload: Dict[str, Any], delivery_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Route event to every matching handler"""

        if delivery_id and self._is_duplicate_event(delivery_id):
            logger.info("Duplicate delivery detected, skipping", delivery_id=delivery_id)
            return {"status": "duplicate", "message": "Delivery already processed"}

        if delivery_id:
            self.event_cache[delivery_id] = datetime.now()

        handlers = self._matching_handlers(event_type, payload)
        if not handlers:
            return {"status": "unhandled", "message": f"No handler for event type: {event_type}"}

        errors = []
        for handler in handlers:
            try:
                await handler(payload)
            except Exception as e:
                # One failing handler must not stop the others
                logger.error(
                    "Event handler failed",
                    event_type=event_type,
                    action=payload.get("action"),
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )
                errors.append(str(e))

        return {
            "status": "error" if errors else "processed",
            "handled": len(handlers),
            "errors": errors,
        }

    def _is_duplicate_event(self, delivery_id: str) -> bool:
        """Check if delivery was recently processed"""
        if delivery_id in self.event_cache:
            return datetime.now() - self.event_cache[delivery_id] < self.dedup_window
        return False

    async def cleanup_event_cache(self) -> None:
        """Clean up old entries from event cache"""
        cutoff_time = datetime.now() - self.dedup_window
        expired_keys = [
            key for key, timestamp in self.event_cache.items()
            if timestamp < cutoff_time
        ]

        for key in expired_keys:
            del self.event_cache[key]

        if expired_keys:
            logger.debug("Cleaned up event cache", expired_count=len(expired_keys))

    def get_event_stats(self) -> Dict[str, Any]:
        """Get event routing statistics"""
        return {
            "cache_size": len(self.event_cache),
            "handler_keys": sorted(self.handlers),
            "dedup_window_seconds": self.dedup_window.total_seconds(),
        }

    def _register_default_handlers(self) -> None:
        for action in ("opened", "synchronize", "reopened"):
            self.on(f"pull_request.{action}")(_log_pull_request)
        self.on("check_run.completed")(_log_check_run)
        self.on("check_suite.completed")(_log_check_suite)
        self.on("status")(_log_status)


async def _log_pull_request(payload: Dict[str, Any]) -> None:
    repo = extract_repo_info(payload)
    logger.info(
        "Pull request event",
        action=payload.get("action"),
        number=payload.get("pull_request", {}).get("number"),
        repository=f"{repo.owner}/{repo.repo}" if repo else None,
    )


async def _log_check_run(payload: Dict[str, Any]) -> None:
    check_run = payload.get("check_run", {})
    logger.info("Check run completed", name=check_run.get("name"), conclusion=check_run.get("conclusion"))


async def _log_check_suite(payload: Dict[str, Any]) -> None:
    logger.info("Check suite completed", head_branch=payload.get("check_suite", {}).get("head_branch"))


async def _log_status(payload: Dict[str, Any]) -> None:
    logger.info("Status event", context=payload.get("context"), state=payload.get("state"))
