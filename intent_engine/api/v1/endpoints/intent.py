import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response

from intent_engine.api.deps import (
    get_event_repo,
    get_identity_resolver,
    get_insights_service,
    get_intent_pipeline,
    get_intent_repos,
    get_recompute_service,
    get_rule_admin_service,
    get_rule_repo,
    get_tracking_service,
    require_admin_key,
    require_ingest_key,
)
from intent_engine.core.config import settings
from intent_engine.core.constants import TOP_SIGNALS_LIMIT, TOP_SIGNALS_WINDOW_DAYS
from intent_engine.core.rate_limit import limiter
from intent_engine.repositories.intent_event_repository import IntentEventRepository
from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.schemas.intent import (
    EventScoreOut,
    IdentifyRequest,
    IdentifyResponse,
    IngestResponse,
    IntentEventIn,
    RecomputeRequest,
    RecomputeResponse,
    RuleOut,
    RuleUpdate,
    TopSignalsResponse,
    TrendResponse,
)
from intent_engine.schemas.track import TrackRequest, TrackResponse
from intent_engine.services.identity_merge import IdentityMergeResolver
from intent_engine.services.insights import IntentInsightsService
from intent_engine.services.intent_pipeline import IntentPipeline
from intent_engine.services.recompute import RecomputeService
from intent_engine.services.rule_admin import RuleAdminService
from intent_engine.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/intent", tags=["Intent"])


# ---------------------------------------------------------------------------
# Ingestion (collaborator-facing)
# ---------------------------------------------------------------------------


@router.post(
    "/events",
    response_model=IngestResponse,
    status_code=201,
    dependencies=[Depends(require_ingest_key)],
)
@limiter.limit(settings.INGEST_RATE_LIMIT)
async def ingest_event(
    request: Request,
    response: Response,
    body: IntentEventIn,
    pipeline: IntentPipeline = Depends(get_intent_pipeline),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> IngestResponse:
    """Record one behavioral event.

    Answers ``201`` once stored (or when a retry maps onto the original
    event) and ``202`` with ``stored: false`` when persistence was
    unavailable; the caller may retry with the same ``dedupe_key``.
    """
    result = await pipeline.ingest(body.model_dump(), repos)
    if not result["stored"]:
        response.status_code = 202
    return IngestResponse(**result)


@router.post("/track", response_model=TrackResponse)
@limiter.limit(settings.INGEST_RATE_LIMIT)
async def track(
    request: Request,
    body: TrackRequest,
    service: TrackingService = Depends(get_tracking_service),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> TrackResponse:
    """Browser tracker beacon; always answers ``ok: true``."""
    result = await service.track(body.model_dump(), repos)
    return TrackResponse(**result)


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    dependencies=[Depends(require_ingest_key)],
)
async def identify(
    body: IdentifyRequest,
    resolver: IdentityMergeResolver = Depends(get_identity_resolver),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> IdentifyResponse:
    """Tie an anonymous visitor to an email and merge its intent score."""
    result = await resolver.identify(
        anonymous_id=body.anonymous_id,
        email=body.email,
        name=body.name,
        source=body.source,
        repos=repos,
    )
    return IdentifyResponse(**result)


# ---------------------------------------------------------------------------
# Rule administration
# ---------------------------------------------------------------------------


@router.get(
    "/rules",
    response_model=List[RuleOut],
    dependencies=[Depends(require_admin_key)],
)
async def list_rules(
    service: RuleAdminService = Depends(get_rule_admin_service),
    rule_repo: IntentRuleRepository = Depends(get_rule_repo),
) -> List[RuleOut]:
    rules = await service.list_rules(rule_repo)
    return [RuleOut.model_validate(rule) for rule in rules]


@router.patch(
    "/rules/{rule_key}",
    response_model=RuleOut,
    dependencies=[Depends(require_admin_key)],
)
async def update_rule(
    rule_key: str,
    body: RuleUpdate,
    service: RuleAdminService = Depends(get_rule_admin_service),
    rule_repo: IntentRuleRepository = Depends(get_rule_repo),
) -> RuleOut:
    """Change a rule's points, description or active flag."""
    rule = await service.update_rule(
        rule_key, body.model_dump(exclude_unset=True), rule_repo
    )
    return RuleOut.model_validate(rule)


@router.post(
    "/events/{event_id}/score",
    response_model=EventScoreOut,
    dependencies=[Depends(require_admin_key)],
)
async def rescore_event(
    event_id: UUID,
    service: RecomputeService = Depends(get_recompute_service),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> EventScoreOut:
    result = await service.rescore_event(event_id, repos)
    return EventScoreOut(**result)


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    dependencies=[Depends(require_admin_key)],
)
async def recompute(
    body: Optional[RecomputeRequest] = None,
    service: RecomputeService = Depends(get_recompute_service),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> RecomputeResponse:
    """Re-score recent events under the current rules and refresh rollups."""
    result = await service.recompute(repos, days=body.days if body else None)
    return RecomputeResponse(**result)


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


@router.get(
    "/subjects/{subject_id}/top-signals",
    response_model=TopSignalsResponse,
    dependencies=[Depends(require_admin_key)],
)
async def top_signals(
    subject_id: UUID,
    days: int = Query(TOP_SIGNALS_WINDOW_DAYS, ge=1, le=365),
    limit: int = Query(TOP_SIGNALS_LIMIT, ge=1, le=100),
    service: IntentInsightsService = Depends(get_insights_service),
    event_repo: IntentEventRepository = Depends(get_event_repo),
) -> TopSignalsResponse:
    result = await service.top_signals(subject_id, event_repo, days=days, limit=limit)
    return TopSignalsResponse(**result)


@router.get(
    "/subjects/{subject_id}/trend",
    response_model=TrendResponse,
    dependencies=[Depends(require_admin_key)],
)
async def trend(
    subject_id: UUID,
    days: int = Query(TOP_SIGNALS_WINDOW_DAYS, ge=1, le=365),
    service: IntentInsightsService = Depends(get_insights_service),
    event_repo: IntentEventRepository = Depends(get_event_repo),
) -> TrendResponse:
    result = await service.trend(subject_id, event_repo, days=days)
    return TrendResponse(**result)
