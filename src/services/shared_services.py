"""
Shared service instances to prevent multiple initialization issues
"""

from functools import partial
from typing import Optional

import httpx

from config.settings import settings
from .event_router import EventRouter
from .github_client import GitHubClient, fetch_hook_ranges
from .ip_range_cache import IpRangeCache
from .retry import RetryPolicy
from .source_ip_validator import SourceIpValidator
from .webhook_pipeline import WebhookPipeline

# Global shared instances - initialized once
_meta_http_client = None
_ip_range_cache = None
_source_ip_validator = None
_webhook_pipeline = None
_event_router = None
_github_client = None


def get_retry_policy() -> RetryPolicy:
    """Build the outbound retry policy from settings"""
    return RetryPolicy(
        max_attempts=settings.RETRY_MAX_ATTEMPTS,
        initial_delay=settings.RETRY_INITIAL_DELAY,
        max_delay=settings.RETRY_MAX_DELAY,
        backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
    )


def get_ip_range_cache() -> IpRangeCache:
    """Get shared IpRangeCache instance"""
    global _ip_range_cache, _meta_http_client
    if _ip_range_cache is None:
        _meta_http_client = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        _ip_range_cache = IpRangeCache(
            partial(fetch_hook_ranges, _meta_http_client, settings.GITHUB_META_URL),
            ttl=settings.IP_RANGES_CACHE_TTL,
        )
    return _ip_range_cache


def get_source_ip_validator() -> SourceIpValidator:
    """Get shared SourceIpValidator instance"""
    global _source_ip_validator
    if _source_ip_validator is None:
        _source_ip_validator = SourceIpValidator(
            get_ip_range_cache(), fail_open=settings.WEBHOOK_IP_FAIL_OPEN
        )
    return _source_ip_validator


def get_webhook_pipeline() -> WebhookPipeline:
    """Get shared WebhookPipeline instance"""
    global _webhook_pipeline
    if _webhook_pipeline is None:
        source_validator = get_source_ip_validator() if settings.WEBHOOK_IP_VALIDATION else None
        _webhook_pipeline = WebhookPipeline(
            secret=settings.GITHUB_WEBHOOK_SECRET,
            allowed_owners=settings.allowed_owners_set,
            source_validator=source_validator,
        )
    return _webhook_pipeline


def get_event_router() -> EventRouter:
    """Get shared EventRouter instance"""
    global _event_router
    if _event_router is None:
        _event_router = EventRouter(github_client=get_github_client())
    return _event_router


def get_github_client() -> Optional[GitHubClient]:
    """
    Get shared GitHubClient instance, None when no token is configured

    Handed to the EventRouter so business handlers can call back to GitHub.
    """
    global _github_client
    if _github_client is None and settings.GITHUB_TOKEN:
        _github_client = GitHubClient(
            token=settings.GITHUB_TOKEN,
            api_url=settings.GITHUB_API_URL,
            retry_policy=get_retry_policy(),
        )
    return _github_client


async def close_services() -> None:
    """Close HTTP clients held by shared services"""
    if _meta_http_client is not None:
        await _meta_http_client.aclose()
    if _github_client is not None:
        await _github_client.client.aclose()
    reset_services()


def reset_services():
    """Reset all shared services (for testing)"""
    global _meta_http_client, _ip_range_cache, _source_ip_validator
    global _webhook_pipeline, _event_router, _github_client
    _meta_http_client = None
    _ip_range_cache = None
    _source_ip_validator = None
    _webhook_pipeline = None
    _event_router = None
    _github_client = None
