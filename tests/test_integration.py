import os
from typing import AsyncGenerator
from uuid import UUID, uuid4

import asyncpg
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from intent_engine.models import Base

_PG_HOST = os.getenv("TEST_PG_HOST", "localhost")
_PG_PORT = int(os.getenv("TEST_PG_PORT", "5433"))
_PG_USER = os.getenv("TEST_PG_USER", "postgres")
_PG_PASS = os.getenv("TEST_PG_PASSWORD", "postgres")
_TEST_DB = "intent_engine_test_db"

_TEST_DB_URL = (
    f"postgresql+asyncpg://{_PG_USER}:{_PG_PASS}@{_PG_HOST}:{_PG_PORT}/{_TEST_DB}"
)


async def _ensure_pg_database() -> None:
    """Create the test database if needed; skip when PostgreSQL is unreachable."""
    try:
        conn = await asyncpg.connect(
            user=_PG_USER,
            password=_PG_PASS,
            host=_PG_HOST,
            port=_PG_PORT,
            database="postgres",
        )
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", _TEST_DB
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{_TEST_DB}"')
        await conn.close()
    except (OSError, asyncpg.PostgresError) as exc:
        pytest.skip(f"PostgreSQL not available ({_PG_HOST}:{_PG_PORT}): {exc}")


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema with default rules seeded, torn down after each test."""
    await _ensure_pg_database()
    engine = create_async_engine(_TEST_DB_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    from intent_engine.main import seed_default_rules

    await seed_default_rules(session_factory=factory)
    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def integration_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the FastAPI app with overridden DB and Redis."""
    from intent_engine.core.database import get_db
    from intent_engine.dependencies import get_redis_client
    from intent_engine.main import app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis_client] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _count(session_factory, model, *where) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(model)
        for clause in where:
            stmt = stmt.where(clause)
        return (await session.execute(stmt)).scalar_one()


class TestIngestIntegration:
    @pytest.mark.asyncio
    async def test_form_submit_scores_and_emits_warm(
        self, integration_client, session_factory
    ):
        from intent_engine.models import IntentScore, IntentSignal, LeadIntentRollup

        anon = uuid4()
        response = await integration_client.post(
            "/api/v1/intent/events",
            json={"event_type": "form_submit", "anonymous_id": str(anon)},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["stored"] is True
        assert body["scored"] is True

        async with session_factory() as session:
            score = (
                await session.execute(
                    select(IntentScore).where(
                        IntentScore.intent_event_id == UUID(body["event_id"])
                    )
                )
            ).scalar_one()
            rollup = (
                await session.execute(
                    select(LeadIntentRollup).where(LeadIntentRollup.subject_id == anon)
                )
            ).scalar_one()
            signals = (
                await session.execute(
                    select(IntentSignal).where(IntentSignal.subject_id == anon)
                )
            ).scalars().all()

        assert score.score == 10
        assert rollup.score_7d == 10
        assert rollup.score_30d == 10
        assert [s.band for s in signals] == ["warm"]

    @pytest.mark.asyncio
    async def test_retry_with_dedupe_key_stores_once(
        self, integration_client, session_factory
    ):
        from intent_engine.models import IntentEvent

        payload = {
            "event_type": "pricing_view",
            "anonymous_id": str(uuid4()),
            "dedupe_key": "evt-123",
        }
        first = await integration_client.post("/api/v1/intent/events", json=payload)
        second = await integration_client.post("/api/v1/intent/events", json=payload)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["duplicate"] is True
        assert second.json()["event_id"] == first.json()["event_id"]
        assert await _count(session_factory, IntentEvent) == 1

    @pytest.mark.asyncio
    async def test_band_crossings_emit_once_each(
        self, integration_client, session_factory
    ):
        from intent_engine.repositories.signal_repository import SignalRepository
        from intent_engine.core.constants import BAND_RANK

        anon = uuid4()
        # form_start(6) + email campaign(2) = 8 points each
        for _ in range(5):
            response = await integration_client.post(
                "/api/v1/intent/events",
                json={
                    "event_type": "form_start",
                    "anonymous_id": str(anon),
                    "utm_medium": "email",
                },
            )
            assert response.status_code == 201

        async with session_factory() as session:
            signals = await SignalRepository(session).list_for_subject(anon)

        bands = [s.band for s in signals]
        assert bands == ["cold", "warm", "hot", "critical"]
        ranks = [BAND_RANK[band] for band in bands]
        assert ranks == sorted(set(ranks))


class TestRuleAdminIntegration:
    @pytest.mark.asyncio
    async def test_rule_edit_applies_to_next_event(
        self, integration_client, session_factory
    ):
        from intent_engine.models import IntentScore

        patched = await integration_client.patch(
            "/api/v1/intent/rules/base_page_view", json={"points": 4}
        )
        assert patched.status_code == 200
        assert patched.json()["points"] == 4

        response = await integration_client.post(
            "/api/v1/intent/events",
            json={"event_type": "page_view", "anonymous_id": str(uuid4())},
        )
        scored = await integration_client.post(
            f"/api/v1/intent/events/{response.json()['event_id']}/score"
        )

        assert scored.status_code == 200
        assert scored.json()["score"] == 4

        again = await integration_client.post(
            f"/api/v1/intent/events/{response.json()['event_id']}/score"
        )
        assert again.status_code == 200
        assert await _count(session_factory, IntentScore) == 1


class TestAutoPushIntegration:
    @pytest.mark.asyncio
    async def test_form_submit_pushes_lead_exactly_once(
        self, integration_client, session_factory
    ):
        from intent_engine.models import SalesCustomer, SalesTask
        from intent_engine.repositories.marketing_lead_repository import (
            MarketingLeadRepository,
        )

        async with session_factory() as session:
            repo = MarketingLeadRepository(session)
            lead = await repo.create(
                company_name="Acme", contact_name="Sam Lee", email="sam@acme.com"
            )
            lead_id = lead.id
            await repo.commit()

        response = await integration_client.post(
            f"/api/v1/marketing/leads/{lead_id}/events",
            json={"event_type": "form_submit"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["stage"]["stage"] == "M5"
        assert body["auto_push"]["pushed"] is True

        again = await integration_client.post(
            f"/api/v1/marketing/leads/{lead_id}/auto-push"
        )

        assert again.status_code == 200
        assert again.json()["pushed"] is False
        assert again.json()["reason"] == "already pushed"
        assert await _count(session_factory, SalesCustomer) == 1
        assert await _count(session_factory, SalesTask) == 1


class TestIdentifyIntegration:
    @pytest.mark.asyncio
    async def test_identify_twice_does_not_double_count(self, integration_client):
        anon = str(uuid4())
        await integration_client.post(
            "/api/v1/intent/events",
            json={"event_type": "contact_view", "anonymous_id": anon},
        )

        first = await integration_client.post(
            "/api/v1/intent/identify",
            json={"anonymous_id": anon, "email": "Visitor@Example.com"},
        )
        second = await integration_client.post(
            "/api/v1/intent/identify",
            json={"anonymous_id": anon, "email": "visitor@example.com"},
        )

        assert first.status_code == 200
        assert first.json()["total_identity_score"] == 5
        assert second.json()["identity_id"] == first.json()["identity_id"]
        assert second.json()["total_identity_score"] == 5
        assert second.json()["threshold_emitted"] is False


class TestWebhookIntegration:
    @pytest.mark.asyncio
    async def test_webhook_finds_or_creates_lead(
        self, integration_client, session_factory
    ):
        from intent_engine.models import MarketingLead

        first = await integration_client.post(
            "/api/v1/marketing/events",
            json={"leadLookup": {"email": "Pat@Acme.com"}, "event_type": "pricing_view"},
        )
        second = await integration_client.post(
            "/api/v1/marketing/events",
            json={"leadLookup": {"email": "pat@acme.com"}, "event_type": "form_submit"},
        )

        assert first.status_code == 201
        assert first.json()["lead_created"] is True
        assert second.status_code == 201
        assert second.json()["lead_created"] is False
        assert second.json()["lead_id"] == first.json()["lead_id"]
        assert second.json()["stage"]["stage"] == "M5"
        assert second.json()["auto_push"]["pushed"] is True
        assert await _count(session_factory, MarketingLead) == 1
