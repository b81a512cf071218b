"""seed default intent rules, stage rules and qualification config

Revision ID: b2c3d4e5f6a7
Revises: a1b2c3d4e5f6
Create Date: 2026-10-19 09:30:00.000000

Inserts the canonical rule sets when missing.  Uses INSERT … WHERE NOT
EXISTS so the migration is fully idempotent.

The values are derived from ``intent_engine.core.default_scoring_rules``.
Do NOT edit values here directly; update that module instead.
"""

from typing import Sequence, Union

import json
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b2c3d4e5f6a7"
down_revision: Union[str, None] = "a1b2c3d4e5f6"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

from intent_engine.core.default_scoring_rules import (  # noqa: E402
    DEFAULT_INTENT_RULES,
    DEFAULT_QUALIFICATION_CONFIG,
    DEFAULT_STAGE_RULES,
)


def _sql_str(value) -> str:
    if value is None:
        return "NULL"
    return "'" + str(value).replace("'", "''") + "'"


def upgrade() -> None:
    for rule in DEFAULT_INTENT_RULES:
        rule_key = _sql_str(rule["rule_key"])
        condition = rule.get("modifier_condition")
        condition_sql = (
            f"{_sql_str(json.dumps(condition))}::jsonb" if condition is not None else "NULL"
        )
        op.execute(
            f"""
            INSERT INTO intent_rules
                (rule_key, rule_type, event_type, modifier_condition, points, description)
            SELECT {rule_key}, {_sql_str(rule["rule_type"])},
                   {_sql_str(rule.get("event_type"))}, {condition_sql},
                   {int(rule["points"])}, {_sql_str(rule.get("description"))}
            WHERE NOT EXISTS (
                SELECT 1 FROM intent_rules WHERE rule_key = {rule_key}
            );
            """
        )

    for rule in DEFAULT_STAGE_RULES:
        event_type = _sql_str(rule["event_type"])
        op.execute(
            f"""
            INSERT INTO stage_scoring_rules
                (rule_name, event_type, points, is_hard_intent, stage_hint)
            SELECT {_sql_str(rule["rule_name"])}, {event_type}, {int(rule["points"])},
                   {"true" if rule.get("is_hard_intent") else "false"},
                   {_sql_str(rule.get("stage_hint"))}
            WHERE NOT EXISTS (
                SELECT 1 FROM stage_scoring_rules WHERE event_type = {event_type}
            );
            """
        )

    columns = ", ".join(DEFAULT_QUALIFICATION_CONFIG)
    values = ", ".join(str(int(v)) for v in DEFAULT_QUALIFICATION_CONFIG.values())
    op.execute(
        f"INSERT INTO qualification_config (id, {columns}) VALUES (1, {values}) "
        "ON CONFLICT (id) DO NOTHING;"
    )


def downgrade() -> None:
    # Remove only the rows we seeded
    for rule in DEFAULT_INTENT_RULES:
        op.execute(f"DELETE FROM intent_rules WHERE rule_key = {_sql_str(rule['rule_key'])};")
    for rule in DEFAULT_STAGE_RULES:
        op.execute(
            "DELETE FROM stage_scoring_rules WHERE event_type = "
            f"{_sql_str(rule['event_type'])};"
        )
    op.execute("DELETE FROM qualification_config WHERE id = 1;")
