"""
Inbound webhook request models
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"

REQUIRED_HEADERS = (SIGNATURE_HEADER, EVENT_HEADER, DELIVERY_HEADER)


class WebhookRequest(BaseModel):
    """A single inbound delivery, frozen for one verification pass"""

    model_config = ConfigDict(frozen=True)

    signature: Optional[str] = None
    event: Optional[str] = None
    delivery_id: Optional[str] = None
    raw_body: bytes = b""
    client_ip: str = ""

    @classmethod
    def from_headers(
        cls, headers: Mapping[str, str], raw_body: bytes, client_ip: str = ""
    ) -> Tuple["WebhookRequest", List[str]]:
        """Build a request from HTTP headers, reporting absent required headers"""
        values = {name: headers.get(name) or headers.get(name.lower()) for name in REQUIRED_HEADERS}
        missing = [name for name, value in values.items() if not value]
        request = cls(
            signature=values[SIGNATURE_HEADER],
            event=values[EVENT_HEADER],
            delivery_id=values[DELIVERY_HEADER],
            raw_body=raw_body,
            client_ip=client_ip,
        )
        return request, missing


class RepoInfo(BaseModel):
    """Repository coordinates carried by a webhook payload"""

    owner: str
    repo: str
    installation_id: Optional[int] = None


def extract_repo_info(payload: Dict[str, Any]) -> Optional[RepoInfo]:
    """Pull owner/repo/installation from a parsed payload, None if absent"""
    repository = payload.get("repository") or {}
    owner = (repository.get("owner") or {}).get("login")
    name = repository.get("name")
    if not owner or not name:
        return None
    installation = payload.get("installation") or {}
    return RepoInfo(owner=owner, repo=name, installation_id=installation.get("id"))
