from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.exceptions import (
    EventNotFoundError,
    IntentScoringError,
    InvalidArgumentError,
    LeadNotFoundError,
    NotFoundError,
    PersistenceUnavailableError,
    RuleNotFoundError,
    UnauthenticatedError,
)
from intent_engine.core.security import require_admin_key, require_ingest_key
from intent_engine.dependencies import get_intent_repos
from intent_engine.main import app


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_cls",
        [EventNotFoundError, RuleNotFoundError, LeadNotFoundError],
    )
    def test_specific_not_found_errors(self, exc_cls):
        exc = exc_cls()
        assert isinstance(exc, NotFoundError)
        assert isinstance(exc, IntentScoringError)

    def test_for_field_builds_error_map(self):
        exc = InvalidArgumentError.for_field("timestamp", "must be ISO-8601")

        assert exc.errors == {"timestamp": "must be ISO-8601"}
        assert exc.detail == "timestamp: must be ISO-8601"

    def test_errors_default_to_empty(self):
        assert InvalidArgumentError("No fields to update").errors == {}


class TestApiKeyChecks:
    @pytest.mark.asyncio
    async def test_unset_key_disables_the_check(self, monkeypatch):
        from intent_engine.core.config import settings

        monkeypatch.setattr(settings, "INGEST_API_KEY", "")
        await require_ingest_key(x_api_key=None)

    @pytest.mark.asyncio
    async def test_wrong_key_is_rejected(self, monkeypatch):
        from intent_engine.core.config import settings

        monkeypatch.setattr(settings, "ADMIN_API_KEY", "right")
        with pytest.raises(UnauthenticatedError):
            await require_admin_key(x_api_key="wrong")

    @pytest.mark.asyncio
    async def test_matching_key_passes(self, monkeypatch):
        from intent_engine.core.config import settings

        monkeypatch.setattr(settings, "ADMIN_API_KEY", "right")
        await require_admin_key(x_api_key="right")


class TestErrorResponses:
    """Domain exceptions map onto stable HTTP status codes."""

    @pytest.mark.asyncio
    async def test_persistence_failure_is_503(self, async_client, mock_repos):
        mock_repos.rules.get_active_rules = AsyncMock(
            side_effect=SQLAlchemyError("could not connect")
        )
        app.dependency_overrides[get_intent_repos] = lambda: mock_repos

        response = await async_client.post("/api/v1/intent/recompute", json={"days": 3})

        assert response.status_code == 503
        assert response.json()["type"] == "persistence_unavailable"
        mock_repos.events.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_validation_errors_are_keyed_by_field(self, async_client):
        response = await async_client.post(
            "/api/v1/intent/identify", json={"email": "sam@acme.com"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "validation_error"
        assert "anonymous_id" in body["errors"]

    @pytest.mark.asyncio
    async def test_malformed_path_uuid(self, async_client):
        response = await async_client.get("/api/v1/intent/subjects/not-a-uuid/trend")

        assert response.status_code == 400
        assert "subject_id" in response.json()["errors"]
