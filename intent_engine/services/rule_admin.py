import logging
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.exceptions import (
    InvalidArgumentError,
    PersistenceUnavailableError,
    RuleNotFoundError,
)
from intent_engine.models.intent_rule import IntentRule
from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
from intent_engine.schemas.intent import RULE_DESCRIPTION_MAX_LENGTH

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("points", "description", "is_active")


class RuleAdminService:
    """List and edit intent rules; edits apply to the next scored event."""

    async def list_rules(self, rule_repo: IntentRuleRepository) -> List[IntentRule]:
        return await rule_repo.list_all()

    async def update_rule(
        self,
        rule_key: str,
        changes: Dict[str, Any],
        rule_repo: IntentRuleRepository,
    ) -> IntentRule:
        """Apply a partial update to one rule.

        Raises:
            InvalidArgumentError: No fields given, or a value is out of range.
            RuleNotFoundError: No rule has *rule_key*.
            PersistenceUnavailableError: The write failed.
        """
        values = {k: v for k, v in changes.items() if k in _UPDATABLE_FIELDS}
        if not values:
            raise InvalidArgumentError("No fields to update")

        errors: Dict[str, str] = {}
        if "points" in values:
            points = values["points"]
            if isinstance(points, bool) or not isinstance(points, int) or points < 0:
                errors["points"] = "points must be a non-negative integer"
        if "description" in values and values["description"] is not None:
            if len(values["description"]) > RULE_DESCRIPTION_MAX_LENGTH:
                errors["description"] = (
                    f"description must be at most {RULE_DESCRIPTION_MAX_LENGTH} characters"
                )
        if "is_active" in values and not isinstance(values["is_active"], bool):
            errors["is_active"] = "is_active must be a boolean"
        if errors:
            raise InvalidArgumentError("Invalid rule update", errors=errors)

        try:
            rule = await rule_repo.update_fields(rule_key, values)
            if rule is None:
                await rule_repo.rollback()
                raise RuleNotFoundError(f"Rule {rule_key!r} not found")
            await rule_repo.commit()
        except SQLAlchemyError as exc:
            await rule_repo.rollback()
            logger.error("Failed to update rule %s: %s", rule_key, exc)
            raise PersistenceUnavailableError("Failed to update rule") from exc

        logger.info("Updated intent rule %s: %s", rule_key, values)
        return rule
