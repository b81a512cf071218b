"""Demo data seeder: rules, config, marketing leads and a replayed event history.

Run with ``python -m intent_engine.scripts.seed`` against an empty or
disposable database; every intent table is truncated first.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import text

from intent_engine.core.config import settings
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.auto_push import AutoPushQualifier
from intent_engine.services.intent_pipeline import IntentPipeline
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.scoring_engine import IntentScoringEngine
from intent_engine.services.stage_classifier import StageClassifier
from intent_engine.services.threshold_emitter import ThresholdEmitter

DEMO_LEADS = [
    {
        "company_name": "Northwind Logistics",
        "contact_name": "Avery Chen",
        "email": "avery@northwind.example",
        "source_type": "website",
    },
    {
        "company_name": "Blue Harbor Foods",
        "contact_name": "Sam Patel",
        "email": "sam@blueharbor.example",
        "source_type": "content_ops",
    },
    {
        "company_name": "Quiet Pine Studio",
        "contact_name": "Jordan Reyes",
        "email": "jordan@quietpine.example",
        "source_type": "crm",
        "auto_push_enabled": False,
    },
]

# (lead index, event_type, days ago, metadata)
DEMO_EVENTS = [
    (0, "page_view", 20, {"path": "/blog/fleet-costs"}),
    (0, "case_study_view", 6, {"path": "/customers/acme"}),
    (0, "pricing_view", 3, {"path": "/pricing", "utm_medium": "email"}),
    (0, "contact_view", 1, {"path": "/contact"}),
    (0, "form_submit", 0, {"form": "demo-request"}),
    (1, "link_click", 12, {"utm_medium": "social", "clicks": 4}),
    (1, "page_view", 2, {"reach": 2500}),
    (1, "form_start", 1, {"form": "newsletter"}),
    (2, "pricing_view", 4, {"path": "/pricing"}),
    (2, "return_visit", 2, {}),
]


def build_pipeline() -> IntentPipeline:
    classifier = StageClassifier()
    return IntentPipeline(
        scoring_engine=IntentScoringEngine(),
        rollup_aggregator=RollupAggregator(),
        threshold_emitter=ThresholdEmitter(),
        stage_classifier=classifier,
        auto_pusher=AutoPushQualifier(stage_classifier=classifier),
    )


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        print("Seeding intent demo data")

        # TRUNCATE ... CASCADE handles FK ordering in one statement
        await session.execute(
            text(
                "TRUNCATE TABLE "
                "sales_tasks, sales_customers, intent_signals, intent_scores, "
                "intent_events, lead_intent_rollups, intent_subject_scores, "
                "tracking_sessions, identities, marketing_leads, intent_rules, "
                "stage_scoring_rules, qualification_config "
                "CASCADE"
            )
        )
        await session.commit()
        print("Cleared existing data")

        repos = IntentRepositories.from_session(session)

        # 0. Rules and config from the single source of truth
        intent_rules = await repos.rules.seed_if_empty()
        stage_rules = await repos.stage_rules.seed_if_empty()
        await repos.config.get_or_create()
        await repos.commit()
        print(f"Created {intent_rules} intent rules and {stage_rules} stage rules")

        # 1. Marketing leads
        lead_ids: list[UUID] = []
        for data in DEMO_LEADS:
            lead = await repos.leads.create(**data)
            lead_ids.append(lead.id)
        await repos.commit()
        print(f"Created {len(lead_ids)} marketing leads")

        # 2. Replay event history through the full pipeline
        pipeline = build_pipeline()
        now = datetime.now(timezone.utc)
        stored = 0
        for lead_index, event_type, days_ago, metadata in DEMO_EVENTS:
            result = await pipeline.ingest(
                {
                    "lead_id": str(lead_ids[lead_index]),
                    "event_type": event_type,
                    "event_source": DEMO_LEADS[lead_index]["source_type"],
                    "occurred_at": (now - timedelta(days=days_ago)).isoformat(),
                    "metadata": metadata,
                    "dedupe_key": f"seed:{uuid4()}",
                },
                repos,
            )
            stored += int(result["stored"])
            if result.get("auto_push", {}).get("pushed"):
                print(f"  lead {lead_index} auto-pushed to sales")
        print(f"Replayed {stored}/{len(DEMO_EVENTS)} events")

        # 3. An anonymous visitor for identity-merge demos
        visitor = uuid4()
        for event_type in ("page_view", "pricing_view", "case_study_view"):
            await pipeline.ingest(
                {"anonymous_id": str(visitor), "event_type": event_type}, repos
            )
        print(f"Anonymous visitor {visitor} has 3 events; identify it to merge")

        print("Seeding complete")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
