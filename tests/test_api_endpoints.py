from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from intent_engine.core.config import settings
from intent_engine.dependencies import (
    get_config_repo,
    get_event_repo,
    get_identity_resolver,
    get_intent_pipeline,
    get_intent_repos,
    get_redis_client,
    get_rule_repo,
    get_tracking_service,
)
from intent_engine.main import app


@pytest_asyncio.fixture
async def client(mock_repos):
    """Client with every DB-backed dependency swapped for mocks."""
    app.dependency_overrides[get_intent_repos] = lambda: mock_repos
    app.dependency_overrides[get_rule_repo] = lambda: mock_repos.rules
    app.dependency_overrides[get_config_repo] = lambda: mock_repos.config
    app.dependency_overrides[get_event_repo] = lambda: mock_repos.events
    app.dependency_overrides[get_redis_client] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _override_pipeline(ingest_result):
    pipeline = AsyncMock()
    pipeline.ingest = AsyncMock(return_value=ingest_result)
    app.dependency_overrides[get_intent_pipeline] = lambda: pipeline
    return pipeline


class TestCORSMiddleware:
    """Verify that CORS headers are present on responses."""

    @pytest.mark.asyncio
    async def test_cors_headers_on_preflight(self, async_client):
        response = await async_client.options(
            "/api/v1/health",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert "access-control-allow-origin" in response.headers

    @pytest.mark.asyncio
    async def test_configured_origin_is_echoed(self, async_client):
        response = await async_client.get(
            "/api/v1/health", headers={"Origin": "http://localhost:3000"}
        )
        assert response.status_code == 200
        assert (
            response.headers.get("access-control-allow-origin")
            == "http://localhost:3000"
        )


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_ok(self, async_client):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestIngestEndpoint:
    """POST /api/v1/intent/events"""

    @pytest.mark.asyncio
    async def test_stored_event_returns_201(self, client):
        event_id, anon = uuid4(), uuid4()
        pipeline = _override_pipeline(
            {
                "event_id": event_id,
                "subject_id": anon,
                "scored": True,
                "stored": True,
                "duplicate": False,
            }
        )

        response = await client.post(
            "/api/v1/intent/events",
            json={"event_type": "form_submit", "anonymous_id": str(anon)},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["event_id"] == str(event_id)
        assert body["scored"] is True
        assert pipeline.ingest.await_args.args[0]["event_type"] == "form_submit"

    @pytest.mark.asyncio
    async def test_unavailable_persistence_returns_202(self, client):
        _override_pipeline(
            {
                "event_id": None,
                "subject_id": None,
                "scored": False,
                "stored": False,
                "duplicate": False,
                "reason": "persistence unavailable",
            }
        )

        response = await client.post(
            "/api/v1/intent/events",
            json={"event_type": "click", "anonymous_id": str(uuid4())},
        )

        assert response.status_code == 202
        assert response.json()["stored"] is False
        assert response.json()["reason"] == "persistence unavailable"

    @pytest.mark.asyncio
    async def test_invalid_event_returns_field_errors(self, client, mock_cache):
        from intent_engine.services.intent_pipeline import IntentPipeline
        from intent_engine.services.rollup_aggregator import RollupAggregator
        from intent_engine.services.scoring_engine import IntentScoringEngine
        from intent_engine.services.threshold_emitter import ThresholdEmitter

        app.dependency_overrides[get_intent_pipeline] = lambda: IntentPipeline(
            IntentScoringEngine(), RollupAggregator(), ThresholdEmitter(), cache=mock_cache
        )

        response = await client.post(
            "/api/v1/intent/events", json={"event_type": "hover"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "invalid_argument"
        assert "event_type" in body["errors"]
        assert body["errors"]["lead_id"] == "lead_id or anonymous_id is required"

    @pytest.mark.asyncio
    async def test_ingest_key_is_enforced(self, client, monkeypatch):
        monkeypatch.setattr(settings, "INGEST_API_KEY", "ingest-secret")
        _override_pipeline({"stored": True})

        response = await client.post(
            "/api/v1/intent/events",
            json={"event_type": "click", "anonymous_id": str(uuid4())},
        )

        assert response.status_code == 401
        assert response.json()["type"] == "unauthenticated"


class TestTrackEndpoint:
    @pytest.mark.asyncio
    async def test_track_answers_ok(self, client):
        service = AsyncMock()
        service.track = AsyncMock(
            return_value={"ok": True, "stored": True, "reason": None, "request_id": "abc"}
        )
        app.dependency_overrides[get_tracking_service] = lambda: service

        response = await client.post(
            "/api/v1/intent/track",
            json={"event": "page_view", "session_id": str(uuid4())},
        )

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["request_id"] == "abc"

    @pytest.mark.asyncio
    async def test_track_requires_session_id(self, client):
        response = await client.post("/api/v1/intent/track", json={"event": "page_view"})

        assert response.status_code == 400
        assert "session_id" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_track_rejects_infinite_value(self, client):
        body = '{"event": "time_on_page", "session_id": "%s", "value": Infinity}' % uuid4()

        response = await client.post(
            "/api/v1/intent/track",
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "value" in response.json()["errors"]


class TestIdentifyEndpoint:
    @pytest.mark.asyncio
    async def test_identify(self, client):
        identity = uuid4()
        resolver = AsyncMock()
        resolver.identify = AsyncMock(
            return_value={
                "identity_id": identity,
                "merged": True,
                "previous_anonymous_score": 12,
                "previous_identity_score": 0,
                "total_identity_score": 12,
                "band": "warm",
                "threshold_emitted": True,
            }
        )
        app.dependency_overrides[get_identity_resolver] = lambda: resolver

        response = await client.post(
            "/api/v1/intent/identify",
            json={"anonymous_id": str(uuid4()), "email": "sam@acme.com"},
        )

        assert response.status_code == 200
        assert response.json()["identity_id"] == str(identity)
        assert response.json()["band"] == "warm"

    @pytest.mark.asyncio
    async def test_identify_rejects_bad_email(self, client):
        response = await client.post(
            "/api/v1/intent/identify",
            json={"anonymous_id": str(uuid4()), "email": "not-an-email"},
        )

        assert response.status_code == 400
        assert "email" in response.json()["errors"]


class TestRuleEndpoints:
    @pytest.mark.asyncio
    async def test_list_rules(self, client, mock_repos, intent_rules):
        mock_repos.rules.list_all = AsyncMock(return_value=intent_rules)

        response = await client.get("/api/v1/intent/rules")

        assert response.status_code == 200
        keys = [r["rule_key"] for r in response.json()]
        assert "base_form_submit" in keys
        assert "mod_email_campaign" in keys

    @pytest.mark.asyncio
    async def test_admin_key_is_enforced(self, client, monkeypatch, mock_repos):
        monkeypatch.setattr(settings, "ADMIN_API_KEY", "admin-secret")
        mock_repos.rules.list_all = AsyncMock(return_value=[])

        denied = await client.get("/api/v1/intent/rules")
        allowed = await client.get(
            "/api/v1/intent/rules", headers={"X-API-Key": "admin-secret"}
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_update_rule(self, client, mock_repos, intent_rules):
        rule = intent_rules[0]
        rule.points = 3
        mock_repos.rules.update_fields = AsyncMock(return_value=rule)

        response = await client.patch(
            f"/api/v1/intent/rules/{rule.rule_key}", json={"points": 3}
        )

        assert response.status_code == 200
        assert response.json()["points"] == 3

    @pytest.mark.asyncio
    async def test_update_unknown_rule(self, client, mock_repos):
        mock_repos.rules.update_fields = AsyncMock(return_value=None)

        response = await client.patch("/api/v1/intent/rules/nope", json={"points": 1})

        assert response.status_code == 404
        assert response.json()["type"] == "rule_not_found"

    @pytest.mark.asyncio
    async def test_update_with_no_fields(self, client):
        response = await client.patch("/api/v1/intent/rules/base_click", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, client):
        response = await client.patch(
            "/api/v1/intent/rules/base_click", json={"rule_type": "modifier"}
        )

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"


class TestScoringAdminEndpoints:
    @pytest.mark.asyncio
    async def test_rescore_unknown_event(self, client, mock_repos):
        mock_repos.events.get_by_id = AsyncMock(return_value=None)

        response = await client.post(f"/api/v1/intent/events/{uuid4()}/score")

        assert response.status_code == 404
        assert response.json()["type"] == "event_not_found"

    @pytest.mark.asyncio
    async def test_recompute_without_body(self, client, mock_repos):
        mock_repos.rules.get_active_rules = AsyncMock(return_value=[])
        mock_repos.events.list_since = AsyncMock(return_value=[])

        response = await client.post("/api/v1/intent/recompute")

        assert response.status_code == 200
        assert response.json()["processed"] == 0

    @pytest.mark.asyncio
    async def test_recompute_days_out_of_range(self, client):
        response = await client.post("/api/v1/intent/recompute", json={"days": 0})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_trend(self, client, mock_repos):
        mock_repos.events.daily_totals = AsyncMock(return_value=[])

        response = await client.get(f"/api/v1/intent/subjects/{uuid4()}/trend?days=7")

        assert response.status_code == 200
        assert len(response.json()["points"]) == 7


class TestMarketingEndpoints:
    @pytest.mark.asyncio
    async def test_get_scoring_config(self, client, mock_repos, qualification_config):
        mock_repos.config.get_or_create = AsyncMock(return_value=qualification_config)

        response = await client.get("/api/v1/marketing/scoring-config")

        assert response.status_code == 200
        assert response.json()["m4_min"] == 31
        assert response.json()["auto_push_threshold"] == 31

    @pytest.mark.asyncio
    async def test_update_breaking_order_is_rejected(
        self, client, mock_repos, qualification_config
    ):
        mock_repos.config.get_or_create = AsyncMock(return_value=qualification_config)

        response = await client.patch(
            "/api/v1/marketing/scoring-config", json={"m2_min": 100}
        )

        assert response.status_code == 400
        assert "m3_min" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_negative_threshold_is_rejected(self, client):
        response = await client.patch(
            "/api/v1/marketing/scoring-config", json={"decay_points_per_week": -1}
        )

        assert response.status_code == 400
        assert "decay_points_per_week" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_lead_event_for_unknown_lead(self, client, mock_repos):
        _override_pipeline({"stored": True})
        mock_repos.leads.get_by_id = AsyncMock(return_value=None)

        response = await client.post(
            f"/api/v1/marketing/leads/{uuid4()}/events", json={"event_type": "click"}
        )

        assert response.status_code == 404
        assert response.json()["type"] == "lead_not_found"

    @pytest.mark.asyncio
    async def test_lead_event_returns_stage(self, client, mock_repos, stage_rules):
        lead, event_id = uuid4(), uuid4()
        pipeline = _override_pipeline(
            {
                "event_id": event_id,
                "subject_id": lead,
                "scored": True,
                "stored": True,
                "duplicate": False,
                "stage": {
                    "stage": "M5",
                    "intent_score": 15,
                    "should_auto_push": True,
                    "hard_intent": True,
                },
                "auto_push": {"pushed": True, "customer_id": uuid4(), "reason": None},
            }
        )
        mock_repos.leads.get_by_id = AsyncMock(return_value=SimpleNamespace(id=lead))
        mock_repos.stage_rules.get_active_rules = AsyncMock(return_value=stage_rules)

        response = await client.post(
            f"/api/v1/marketing/leads/{lead}/events", json={"event_type": "form_submit"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["stage"]["stage"] == "M5"
        assert body["auto_push"]["pushed"] is True
        payload = pipeline.ingest.await_args.args[0]
        assert payload["lead_id"] == str(lead)
        assert payload["event_value"] == 15

    @pytest.mark.asyncio
    async def test_webhook_event_creates_lead(self, client, mock_repos):
        created = SimpleNamespace(id=uuid4())
        _override_pipeline(
            {
                "event_id": uuid4(),
                "subject_id": created.id,
                "scored": True,
                "stored": True,
                "duplicate": False,
            }
        )
        mock_repos.leads.get_by_email = AsyncMock(return_value=None)
        mock_repos.leads.create = AsyncMock(return_value=created)

        response = await client.post(
            "/api/v1/marketing/events",
            json={"leadLookup": {"email": "new@acme.com"}, "event_type": "click"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["lead_id"] == str(created.id)
        assert body["lead_created"] is True
        assert body["event"]["stored"] is True

    @pytest.mark.asyncio
    async def test_webhook_event_requires_lookup(self, client):
        response = await client.post(
            "/api/v1/marketing/events", json={"event_type": "click"}
        )

        assert response.status_code == 400
        assert "lead_lookup" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_webhook_event_empty_lookup(self, client):
        _override_pipeline({"stored": True})

        response = await client.post(
            "/api/v1/marketing/events",
            json={"lead_lookup": {}, "event_type": "click"},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == {"lead_lookup": "email or phone is required"}

    @pytest.mark.asyncio
    async def test_auto_push_unknown_lead(self, client, mock_repos):
        mock_repos.leads.get_by_id = AsyncMock(return_value=None)

        response = await client.post(f"/api/v1/marketing/leads/{uuid4()}/auto-push")

        assert response.status_code == 200
        assert response.json() == {
            "pushed": False,
            "customer_id": None,
            "reason": "lead not found",
        }
