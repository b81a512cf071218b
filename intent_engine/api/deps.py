"""API-layer dependency functions.

Re-exports all dependency factories from ``intent_engine.dependencies``
and the API key checks from ``intent_engine.core.security`` so that
endpoint modules only need to import from ``intent_engine.api.deps``.
"""

from intent_engine.core.security import require_admin_key, require_ingest_key
from intent_engine.dependencies import (
    # Repository factories
    get_intent_repos,
    get_rule_repo,
    get_event_repo,
    get_config_repo,
    # Service factories
    get_intent_pipeline,
    get_tracking_service,
    get_marketing_event_service,
    get_identity_resolver,
    get_auto_push_qualifier,
    get_rule_admin_service,
    get_recompute_service,
    get_config_service,
    get_insights_service,
    # Redis
    get_redis_client,
    get_cache_service,
)

__all__ = [
    "require_admin_key",
    "require_ingest_key",
    "get_intent_repos",
    "get_rule_repo",
    "get_event_repo",
    "get_config_repo",
    "get_intent_pipeline",
    "get_tracking_service",
    "get_marketing_event_service",
    "get_identity_resolver",
    "get_auto_push_qualifier",
    "get_rule_admin_service",
    "get_recompute_service",
    "get_config_service",
    "get_insights_service",
    "get_redis_client",
    "get_cache_service",
]
