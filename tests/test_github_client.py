"""
Tests for GitHub API client
"""

import httpx
import pytest

from src.services.github_client import GitHubClient, GitHubAPIError
from src.services.retry import RetryPolicy


FAST_RETRY = RetryPolicy(max_attempts=2, initial_delay=0, max_delay=0)


def install_transport(client: GitHubClient, handler) -> None:
    """Swap the client's HTTP transport for a mock"""
    client.client = httpx.AsyncClient(
        headers=client.headers, transport=httpx.MockTransport(handler)
    )


class TestGitHubClient:
    """Test cases for GitHub API client"""

    @pytest.fixture
    def client(self):
        """Create a test client"""
        return GitHubClient(token="test_token", retry_policy=FAST_RETRY)

    def test_client_initialization(self, client):
        """Test client initialization"""
        assert client.token == "test_token"
        assert client.headers["Authorization"] == "token test_token"
        assert client.headers["User-Agent"] == "GitHub-Webhook-Gatekeeper/1.0"
        assert client.api_url == "https://api.github.com"

    def test_client_no_token_raises_error(self):
        """Test that missing token raises ValueError"""
        with pytest.raises(ValueError, match="GitHub token is required"):
            GitHubClient(token="")

    @pytest.mark.asyncio
    async def test_create_comment(self, client):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"id": 11, "body": "hi"})

        install_transport(client, handler)
        async with client:
            result = await client.create_comment("octo-org", "hello-world", 7, "hi")

        assert result["id"] == 11
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/repos/octo-org/hello-world/issues/7/comments"
        assert requests[0].headers["Authorization"] == "token test_token"

    @pytest.mark.asyncio
    async def test_server_error_retried(self, client):
        responses = iter([httpx.Response(502), httpx.Response(200, json={"number": 7})])
        install_transport(client, lambda request: next(responses))

        async with client:
            pull = await client.get_pull_request("octo-org", "hello-world", 7)

        assert pull == {"number": 7}

    @pytest.mark.asyncio
    async def test_rate_limit_403_retried(self, client):
        responses = iter([
            httpx.Response(403, json={"message": "API rate limit exceeded for user ID 1."}),
            httpx.Response(200, json={"full_name": "octo-org/hello-world"}),
        ])
        install_transport(client, lambda request: next(responses))

        async with client:
            repo = await client.get_repository("octo-org", "hello-world")

        assert repo["full_name"] == "octo-org/hello-world"

    @pytest.mark.asyncio
    async def test_not_found_raised_without_retry(self, client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"message": "Not Found"})

        install_transport(client, handler)
        async with client:
            with pytest.raises(GitHubAPIError) as exc_info:
                await client.get_comments("octo-org", "hello-world", 7)

        assert exc_info.value.status_code == 404
        assert exc_info.value.response_data == {"message": "Not Found"}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_wrapped_and_retried(self, client):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        install_transport(client, handler)
        async with client:
            with pytest.raises(GitHubAPIError) as exc_info:
                await client.add_labels("octo-org", "hello-world", 7, ["ci"])

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_empty_response_body(self, client):
        install_transport(client, lambda request: httpx.Response(204))

        async with client:
            assert await client.update_comment("octo-org", "hello-world", 5, "edited") == {}
