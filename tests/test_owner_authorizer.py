"""
Tests for repository owner authorization
"""

import pytest

from src.services.owner_authorizer import (
    OwnerAuthorizer,
    OwnerDecisionStatus,
    extract_owner_login,
)


class TestOwnerAuthorizer:
    """Test cases for OwnerAuthorizer"""

    @pytest.fixture
    def authorizer(self):
        return OwnerAuthorizer({"octo-org", "d7knight2"})

    def test_allowed_owner(self, authorizer):
        decision = authorizer.is_authorized("octo-org")

        assert decision.status == OwnerDecisionStatus.ALLOWED
        assert decision.allowed is True
        assert decision.owner == "octo-org"

    def test_denied_owner(self, authorizer):
        decision = authorizer.is_authorized("mallory")

        assert decision.status == OwnerDecisionStatus.DENIED
        assert decision.allowed is False
        assert "mallory" in decision.reason

    @pytest.mark.parametrize("owner", [None, ""])
    def test_missing_owner(self, authorizer, owner):
        decision = authorizer.is_authorized(owner)

        assert decision.status == OwnerDecisionStatus.MISSING_OWNER
        assert decision.allowed is False

    def test_match_is_case_sensitive(self, authorizer):
        assert authorizer.is_authorized("Octo-Org").status == OwnerDecisionStatus.DENIED

    def test_empty_allow_list_denies_everyone(self):
        assert OwnerAuthorizer([]).is_authorized("octo-org").status == OwnerDecisionStatus.DENIED

    def test_check_payload(self, authorizer):
        payload = {"repository": {"name": "hello", "owner": {"login": "d7knight2"}}}

        assert authorizer.check_payload(payload).allowed is True
        assert authorizer.check_payload({"action": "opened"}).status == OwnerDecisionStatus.MISSING_OWNER


class TestExtractOwnerLogin:
    """Test cases for owner extraction"""

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"repository": {"owner": {"login": "octo-org"}}}, "octo-org"),
            ({"repository": {"owner": {}}}, None),
            ({"repository": {"owner": None}}, None),
            ({"repository": {"owner": {"login": 42}}}, None),
            ({"repository": "octo-org/hello"}, None),
            ({}, None),
            ([], None),
        ],
    )
    def test_extraction(self, payload, expected):
        assert extract_owner_login(payload) == expected
