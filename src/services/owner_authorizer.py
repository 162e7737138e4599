"""
Repository owner allow-list checks
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import structlog

logger = structlog.get_logger()


class OwnerDecisionStatus(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    MISSING_OWNER = "missing_owner"


@dataclass(frozen=True)
class OwnerDecision:
    status: OwnerDecisionStatus
    owner: Optional[str] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.status == OwnerDecisionStatus.ALLOWED


def extract_owner_login(payload: Any) -> Optional[str]:
    """Get repository.owner.login from a webhook payload, if present"""
    if not isinstance(payload, dict):
        return None
    repository = payload.get("repository")
    if not isinstance(repository, dict):
        return None
    owner = repository.get("owner")
    if not isinstance(owner, dict):
        return None
    login = owner.get("login")
    if not isinstance(login, str) or not login:
        return None
    return login


class OwnerAuthorizer:
    """Checks claimed repository owners against a configured allow-list"""

    def __init__(self, allowed_owners: Iterable[str]):
        self.allowed_owners = frozenset(allowed_owners)
        if not self.allowed_owners:
            logger.warning("Owner allow-list is empty, every delivery will be denied")

    def is_authorized(self, owner_login: Optional[str]) -> OwnerDecision:
        """Decide whether deliveries for this owner may be processed"""
        if not owner_login:
            return OwnerDecision(
                OwnerDecisionStatus.MISSING_OWNER,
                reason="Missing repository owner information",
            )

        if owner_login not in self.allowed_owners:
            logger.warning("Unauthorized repository owner", owner=owner_login)
            return OwnerDecision(
                OwnerDecisionStatus.DENIED,
                owner=owner_login,
                reason=f"Repository owner '{owner_login}' is not allowed",
            )

        return OwnerDecision(OwnerDecisionStatus.ALLOWED, owner=owner_login)

    def check_payload(self, payload: Dict[str, Any]) -> OwnerDecision:
        return self.is_authorized(extract_owner_login(payload))
