import logging
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from intent_engine.core.cache import CacheService
from intent_engine.core.config import settings
from intent_engine.core.database import get_db
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.auto_push import AutoPushQualifier
from intent_engine.services.intent_pipeline import IntentPipeline
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.scoring_engine import IntentScoringEngine
from intent_engine.services.stage_classifier import StageClassifier
from intent_engine.services.threshold_emitter import ThresholdEmitter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client, or ``None`` when Redis is unreachable."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable, dedupe fast path disabled for this request")
        return None


# ---------------------------------------------------------------------------
# Repository factory functions (each gets the shared db session)
# ---------------------------------------------------------------------------


async def get_intent_repos(
    db: AsyncSession = Depends(get_db),
) -> IntentRepositories:
    return IntentRepositories.from_session(db)


async def get_rule_repo(
    db: AsyncSession = Depends(get_db),
):
    from intent_engine.repositories.intent_rule_repository import IntentRuleRepository

    return IntentRuleRepository(db)


async def get_event_repo(
    db: AsyncSession = Depends(get_db),
):
    from intent_engine.repositories.intent_event_repository import IntentEventRepository

    return IntentEventRepository(db)


async def get_config_repo(
    db: AsyncSession = Depends(get_db),
):
    from intent_engine.repositories.qualification_config_repository import (
        QualificationConfigRepository,
    )

    return QualificationConfigRepository(db)


# ---------------------------------------------------------------------------
# Cache service factory
# ---------------------------------------------------------------------------


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
) -> CacheService:
    """Build a :class:`CacheService` backed by the shared Redis client."""
    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_scoring_engine() -> IntentScoringEngine:
    return IntentScoringEngine()


async def get_rollup_aggregator() -> RollupAggregator:
    return RollupAggregator()


async def get_stage_classifier() -> StageClassifier:
    return StageClassifier()


async def get_auto_push_qualifier(
    stage_classifier: StageClassifier = Depends(get_stage_classifier),
) -> AutoPushQualifier:
    return AutoPushQualifier(stage_classifier=stage_classifier)


async def get_intent_pipeline(
    scoring_engine: IntentScoringEngine = Depends(get_scoring_engine),
    rollup_aggregator: RollupAggregator = Depends(get_rollup_aggregator),
    cache: CacheService = Depends(get_cache_service),
    stage_classifier: StageClassifier = Depends(get_stage_classifier),
    auto_pusher: AutoPushQualifier = Depends(get_auto_push_qualifier),
) -> IntentPipeline:
    """Build an :class:`IntentPipeline` with injected dependencies."""
    return IntentPipeline(
        scoring_engine=scoring_engine,
        rollup_aggregator=rollup_aggregator,
        threshold_emitter=ThresholdEmitter(),
        cache=cache,
        stage_classifier=stage_classifier,
        auto_pusher=auto_pusher,
    )


async def get_tracking_service(
    pipeline: IntentPipeline = Depends(get_intent_pipeline),
):
    from intent_engine.services.tracking_service import TrackingService

    return TrackingService(pipeline=pipeline)


async def get_marketing_event_service(
    pipeline: IntentPipeline = Depends(get_intent_pipeline),
):
    from intent_engine.services.marketing_events import MarketingEventService

    return MarketingEventService(pipeline=pipeline)


async def get_identity_resolver(
    rollup_aggregator: RollupAggregator = Depends(get_rollup_aggregator),
    stage_classifier: StageClassifier = Depends(get_stage_classifier),
):
    from intent_engine.services.identity_merge import IdentityMergeResolver

    return IdentityMergeResolver(
        rollup_aggregator=rollup_aggregator, stage_classifier=stage_classifier
    )


async def get_rule_admin_service():
    from intent_engine.services.rule_admin import RuleAdminService

    return RuleAdminService()


async def get_recompute_service(
    scoring_engine: IntentScoringEngine = Depends(get_scoring_engine),
    rollup_aggregator: RollupAggregator = Depends(get_rollup_aggregator),
):
    from intent_engine.services.recompute import RecomputeService

    return RecomputeService(
        scoring_engine=scoring_engine, rollup_aggregator=rollup_aggregator
    )


async def get_config_service():
    from intent_engine.services.qualification_config import QualificationConfigService

    return QualificationConfigService()


async def get_insights_service():
    from intent_engine.services.insights import IntentInsightsService

    return IntentInsightsService()
