"""
HTTP-level tests for the webhook and health endpoints
"""

import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock, patch

from main import app
from src.services.event_router import EventRouter
from src.services.ip_range_cache import IpRangeCache
from src.services.shared_services import (
    get_event_router,
    get_ip_range_cache,
    get_webhook_pipeline,
    reset_services,
)
from src.services.source_ip_validator import SourceIpValidator
from src.services.webhook_pipeline import WebhookPipeline
from src.utils.webhook_validator import compute_webhook_signature


SECRET = "integration-secret"


def pull_request_body(owner="octo-org"):
    return json.dumps({
        "action": "opened",
        "pull_request": {"number": 7},
        "repository": {"name": "hello-world", "owner": {"login": owner}},
    }).encode()


def signed_headers(body, event="pull_request", delivery_id="delivery-1"):
    return {
        "X-Hub-Signature-256": compute_webhook_signature(SECRET, body),
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": delivery_id,
        "Content-Type": "application/json",
    }


class TestWebhookEndpoint:
    """Integration tests for POST /webhook"""

    @pytest.fixture
    def handled(self):
        return AsyncMock()

    @pytest.fixture
    def event_router(self, handled):
        router = EventRouter(register_defaults=False)
        router.on("pull_request.opened")(handled)
        return router

    @pytest.fixture
    def client(self, event_router):
        app.dependency_overrides[get_webhook_pipeline] = lambda: WebhookPipeline(SECRET, {"octo-org"})
        app.dependency_overrides[get_event_router] = lambda: event_router
        yield TestClient(app)
        app.dependency_overrides.clear()
        reset_services()

    def test_valid_delivery_dispatched(self, client, handled):
        body = pull_request_body()

        response = client.post("/webhook", content=body, headers=signed_headers(body))

        assert response.status_code == 200
        assert response.json()["message"] == "Webhook received"
        assert response.json()["status"] == "processed"
        handled.assert_awaited_once()

    def test_missing_headers_return_400(self, client, handled):
        body = pull_request_body()
        headers = signed_headers(body)
        del headers["X-GitHub-Delivery"]

        response = client.post("/webhook", content=body, headers=headers)

        assert response.status_code == 400
        handled.assert_not_awaited()

    def test_unauthorized_owner_returns_403(self, client, handled):
        body = pull_request_body(owner="mallory")

        response = client.post("/webhook", content=body, headers=signed_headers(body))

        assert response.status_code == 403
        assert "mallory" in response.json()["detail"]
        handled.assert_not_awaited()

    def test_bad_signature_returns_401(self, client, handled):
        body = pull_request_body()
        headers = signed_headers(body)
        headers["X-Hub-Signature-256"] = compute_webhook_signature("wrong-secret", body)

        response = client.post("/webhook", content=body, headers=headers)

        assert response.status_code == 401
        handled.assert_not_awaited()

    def test_invalid_json_returns_400(self, client):
        body = b"{not json"

        response = client.post("/webhook", content=body, headers=signed_headers(body))

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid JSON payload"

    def test_handler_failure_still_acknowledged(self, client, handled):
        handled.side_effect = RuntimeError("boom")
        body = pull_request_body()

        response = client.post("/webhook", content=body, headers=signed_headers(body))

        assert response.status_code == 200
        assert response.json()["status"] == "error"

    def test_expired_delivery_ids_pruned_on_next_delivery(self, client, event_router):
        for index in range(5):
            body = pull_request_body()
            client.post("/webhook", content=body, headers=signed_headers(body, delivery_id=f"old-{index}"))
        assert len(event_router.event_cache) == 5

        for delivery_id in event_router.event_cache:
            event_router.event_cache[delivery_id] -= timedelta(hours=1)

        body = pull_request_body()
        response = client.post("/webhook", content=body, headers=signed_headers(body, delivery_id="fresh"))

        assert response.status_code == 200
        assert list(event_router.event_cache) == ["fresh"]


class TestWebhookEndpointSourceValidation:
    """Integration tests for source IP enforcement"""

    @pytest.fixture
    def validator(self):
        validator = Mock(spec=SourceIpValidator)
        validator.is_allowed = AsyncMock(return_value=False)
        return validator

    @pytest.fixture
    def client(self, validator):
        app.dependency_overrides[get_webhook_pipeline] = lambda: WebhookPipeline(
            SECRET, {"octo-org"}, source_validator=validator
        )
        app.dependency_overrides[get_event_router] = lambda: EventRouter(register_defaults=False)
        yield TestClient(app)
        app.dependency_overrides.clear()
        reset_services()

    def test_forwarded_header_ignored_without_trust_proxy(self, client, validator):
        body = pull_request_body()
        headers = signed_headers(body)
        headers["X-Forwarded-For"] = "192.30.252.1"

        with patch("src.api.webhooks.settings") as mock_settings:
            mock_settings.TRUST_PROXY = False
            response = client.post("/webhook", content=body, headers=headers)

        assert response.status_code == 403
        assert validator.is_allowed.await_args.args[0] != "192.30.252.1"

    def test_forwarded_header_used_with_trust_proxy(self, client, validator):
        validator.is_allowed.return_value = True
        body = pull_request_body()
        headers = signed_headers(body)
        headers["X-Forwarded-For"] = "192.30.252.1, 10.0.0.1"

        with patch("src.api.webhooks.settings") as mock_settings:
            mock_settings.TRUST_PROXY = True
            response = client.post("/webhook", content=body, headers=headers)

        assert response.status_code == 200
        validator.is_allowed.assert_awaited_once_with("192.30.252.1")


class TestHealthEndpoints:
    """Integration tests for health and operational endpoints"""

    @pytest.fixture
    def client(self):
        reset_services()
        yield TestClient(app)
        reset_services()

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["webhook"] == "/webhook"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["webhook_secret"] is True
        assert response.json()["ip_ranges_cached"] == 0

    def test_invalidate_ip_ranges(self, client):
        cache = get_ip_range_cache()
        with patch.object(IpRangeCache, "invalidate") as invalidate:
            response = client.post("/health/ip-ranges/invalidate")

        assert response.status_code == 200
        assert cache is get_ip_range_cache()
        invalidate.assert_called_once()
