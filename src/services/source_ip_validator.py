"""
Validates that webhook deliveries originate from GitHub's hook ranges
"""

import structlog

from .ip_range_cache import IpRangeCache
from src.utils.ip_utils import ip_in_cidr

logger = structlog.get_logger()


class SourceIpValidator:
    """Allow/deny decision for a client IP against GitHub's webhook ranges"""

    def __init__(self, ip_range_cache: IpRangeCache, fail_open: bool = False):
        self.ip_range_cache = ip_range_cache
        self.fail_open = fail_open

    async def is_allowed(self, ip: str) -> bool:
        if not ip:
            return False

        try:
            ranges = await self.ip_range_cache.get_ranges()
        except Exception as e:
            logger.error("Error validating GitHub IP", ip=ip, error=str(e))
            if self.fail_open:
                logger.warning("IP validation failed, allowing request (fail-open mode)", ip=ip)
                return True
            return False

        for cidr in ranges:
            if ip_in_cidr(ip, cidr):
                return True

        logger.warning("Request IP is not in GitHub webhook ranges", ip=ip)
        return False
