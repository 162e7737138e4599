"""
GitHub API client for outbound calls made by event handlers
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from .retry import RetryPolicy, run_with_retry

logger = structlog.get_logger()


class GitHubAPIError(Exception):
    """Custom exception for GitHub API errors"""
    def __init__(self, message: str, status_code: int = None, response_data: dict = None):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(message)


async def fetch_hook_ranges(http_client: httpx.AsyncClient, url: str) -> List[str]:
    """
    Fetch the webhook source CIDR blocks from GitHub's meta endpoint

    Any non-2xx response or transport error is raised to the caller. A
    response without a ``hooks`` list yields no ranges.
    """
    response = await http_client.get(url)
    response.raise_for_status()
    data = response.json()
    hooks = data.get("hooks") if isinstance(data, dict) else None
    if not isinstance(hooks, list):
        logger.warning("GitHub meta response has no hooks list", url=url)
        return []
    return [cidr for cidr in hooks if isinstance(cidr, str)]


class GitHubClient:
    """GitHub API client; every request is retried per ``retry_policy``"""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if not token:
            raise ValueError("GitHub token is required")

        self.token = token
        self.api_url = api_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.headers = {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "GitHub-Webhook-Gatekeeper/1.0"
        }
        self.client = httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(30.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5)
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def _make_request(self, method: str, path: str, **kwargs) -> Any:
        """Make an authenticated request to GitHub API with retries"""
        url = f"{self.api_url}{path}"

        async def attempt() -> Any:
            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                logger.error("GitHub API request failed", error=str(e), url=url)
                raise GitHubAPIError(f"Request failed: {str(e)}") from e

            if response.status_code >= 400:
                error_data = {}
                try:
                    error_data = response.json()
                except ValueError:
                    pass

                raise GitHubAPIError(
                    f"GitHub API error: {response.status_code}",
                    status_code=response.status_code,
                    response_data=error_data
                )

            return response.json() if response.content else {}

        return await run_with_retry(attempt, self.retry_policy, label=f"{method} {path}")

    # Pull Request Operations
    async def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        """Get a specific pull request"""
        return await self._make_request("GET", f"/repos/{owner}/{repo}/pulls/{number}")

    # Comment Operations
    async def create_comment(self, owner: str, repo: str, issue_number: int, body: str) -> Dict[str, Any]:
        """Create a comment on an issue or pull request"""
        data = {"body": body}
        return await self._make_request("POST", f"/repos/{owner}/{repo}/issues/{issue_number}/comments", json=data)

    async def update_comment(self, owner: str, repo: str, comment_id: int, body: str) -> Dict[str, Any]:
        """Update an existing comment"""
        data = {"body": body}
        return await self._make_request("PATCH", f"/repos/{owner}/{repo}/issues/comments/{comment_id}", json=data)

    async def get_comments(self, owner: str, repo: str, issue_number: int) -> List[Dict[str, Any]]:
        """Get all comments for an issue or pull request"""
        return await self._make_request("GET", f"/repos/{owner}/{repo}/issues/{issue_number}/comments")

    # Label Operations
    async def add_labels(self, owner: str, repo: str, issue_number: int, labels: List[str]) -> Dict[str, Any]:
        """Add labels to an issue or pull request"""
        data = {"labels": labels}
        return await self._make_request("POST", f"/repos/{owner}/{repo}/issues/{issue_number}/labels", json=data)

    # Repository Operations
    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        """Get repository information"""
        return await self._make_request("GET", f"/repos/{owner}/{repo}")
