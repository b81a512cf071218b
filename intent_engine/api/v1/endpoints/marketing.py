from uuid import UUID

from fastapi import APIRouter, Depends, Response

from intent_engine.api.deps import (
    get_auto_push_qualifier,
    get_config_repo,
    get_config_service,
    get_intent_repos,
    get_marketing_event_service,
    require_admin_key,
    require_ingest_key,
)
from intent_engine.repositories.qualification_config_repository import (
    QualificationConfigRepository,
)
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.schemas.marketing import (
    AutoPushResponse,
    LeadEventIn,
    LeadEventResponse,
    QualificationConfigOut,
    QualificationConfigUpdate,
    WebhookEventIn,
    WebhookEventResponse,
)
from intent_engine.services.auto_push import AutoPushQualifier
from intent_engine.services.marketing_events import MarketingEventService
from intent_engine.services.qualification_config import QualificationConfigService

router = APIRouter(prefix="/marketing", tags=["Marketing"])


@router.get(
    "/scoring-config",
    response_model=QualificationConfigOut,
    dependencies=[Depends(require_admin_key)],
)
async def get_scoring_config(
    service: QualificationConfigService = Depends(get_config_service),
    config_repo: QualificationConfigRepository = Depends(get_config_repo),
) -> QualificationConfigOut:
    config = await service.get_config(config_repo)
    return QualificationConfigOut.model_validate(config)


@router.patch(
    "/scoring-config",
    response_model=QualificationConfigOut,
    dependencies=[Depends(require_admin_key)],
)
async def update_scoring_config(
    body: QualificationConfigUpdate,
    service: QualificationConfigService = Depends(get_config_service),
    config_repo: QualificationConfigRepository = Depends(get_config_repo),
) -> QualificationConfigOut:
    """Partially update stage thresholds, auto-push threshold or decay."""
    config = await service.update_config(
        body.model_dump(exclude_unset=True), config_repo
    )
    return QualificationConfigOut.model_validate(config)


@router.post(
    "/leads/{lead_id}/events",
    response_model=LeadEventResponse,
    status_code=201,
    dependencies=[Depends(require_ingest_key)],
)
async def record_lead_event(
    lead_id: UUID,
    body: LeadEventIn,
    response: Response,
    service: MarketingEventService = Depends(get_marketing_event_service),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> LeadEventResponse:
    """Record an event for a marketing lead, re-stage it and maybe auto-push."""
    result = await service.record_lead_event(lead_id, body.model_dump(), repos)
    if not result["event"]["stored"]:
        response.status_code = 202
    return LeadEventResponse(**result)


@router.post(
    "/events",
    response_model=WebhookEventResponse,
    status_code=201,
    dependencies=[Depends(require_ingest_key)],
)
async def record_webhook_event(
    body: WebhookEventIn,
    response: Response,
    service: MarketingEventService = Depends(get_marketing_event_service),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> WebhookEventResponse:
    """Record an event for the lead matching email or phone, creating it if needed."""
    result = await service.record_webhook_event(
        body.lead_lookup.email,
        body.lead_lookup.phone,
        body.model_dump(exclude={"lead_lookup"}),
        repos,
    )
    if not result["event"]["stored"]:
        response.status_code = 202
    return WebhookEventResponse(**result)


@router.post(
    "/leads/{lead_id}/auto-push",
    response_model=AutoPushResponse,
    dependencies=[Depends(require_admin_key)],
)
async def auto_push_lead(
    lead_id: UUID,
    qualifier: AutoPushQualifier = Depends(get_auto_push_qualifier),
    repos: IntentRepositories = Depends(get_intent_repos),
) -> AutoPushResponse:
    """Run the auto-push qualifier for one lead."""
    result = await qualifier.push(lead_id, repos)
    return AutoPushResponse(
        pushed=result.pushed, customer_id=result.customer_id, reason=result.reason
    )
