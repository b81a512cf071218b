import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.exceptions import InvalidArgumentError, PersistenceUnavailableError
from intent_engine.models.qualification_config import QualificationConfig
from intent_engine.repositories.qualification_config_repository import (
    QualificationConfigRepository,
)

logger = logging.getLogger(__name__)

CONFIG_FIELDS = (
    "m1_min",
    "m2_min",
    "m3_min",
    "m4_min",
    "m5_min",
    "auto_push_threshold",
    "decay_points_per_week",
)
_STAGE_FIELDS = CONFIG_FIELDS[:5]


def validate_config_update(
    current: Dict[str, int], changes: Dict[str, Any]
) -> Dict[str, int]:
    """Return the validated subset of *changes*.

    Every given field must be a non-negative integer, at least one field
    is required, and the merged stage thresholds must stay ascending.
    """
    values = {k: v for k, v in changes.items() if k in CONFIG_FIELDS and v is not None}
    if not values:
        raise InvalidArgumentError("At least one field is required")

    errors: Dict[str, str] = {}
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            errors[key] = f"{key} must be a non-negative integer"
    if errors:
        raise InvalidArgumentError("Invalid scoring config", errors=errors)

    merged = {**current, **values}
    for lower, upper in zip(_STAGE_FIELDS, _STAGE_FIELDS[1:]):
        if merged[lower] > merged[upper]:
            errors[upper] = f"{upper} must be >= {lower}"
    if errors:
        raise InvalidArgumentError(
            "Stage thresholds must be in ascending order", errors=errors
        )
    return values


class QualificationConfigService:
    """Read and partially update the singleton qualification config."""

    async def get_config(
        self, config_repo: QualificationConfigRepository
    ) -> QualificationConfig:
        config = await config_repo.get_or_create()
        await config_repo.commit()
        return config

    async def update_config(
        self,
        changes: Dict[str, Any],
        config_repo: QualificationConfigRepository,
    ) -> QualificationConfig:
        current = await config_repo.get_or_create()
        values = validate_config_update(
            {field: getattr(current, field) for field in CONFIG_FIELDS}, changes
        )
        try:
            config = await config_repo.update_fields(values)
            await config_repo.commit()
        except SQLAlchemyError as exc:
            await config_repo.rollback()
            logger.error("Failed to update qualification config: %s", exc)
            raise PersistenceUnavailableError("Failed to update scoring config") from exc

        logger.info("Qualification config updated: %s", values)
        return config
