"""seed default membership rules

Revision ID: b2d5f8a31c22
Revises: a1c4e7f20b11
Create Date: 2026-10-12 09:30:00.000000

Inserts the canonical rule catalogue into ``membership_rules`` when the
rules are missing.  Uses INSERT ... WHERE NOT EXISTS so the migration is
fully idempotent.

The rule values are derived from ``app.core.default_rules``.
Do NOT edit values here directly; update DEFAULT_RULES in that module,
then regenerate this migration.
"""

from typing import Sequence, Union

import json
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b2d5f8a31c22"
down_revision: Union[str, None] = "a1c4e7f20b11"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Import at migration-generation time so values stay in sync.
from app.core.default_rules import DEFAULT_RULES  # noqa: E402


def upgrade() -> None:
    insert = sa.text(
        """
        INSERT INTO membership_rules (
            rule_id, name, description, condition_kind, condition_params,
            target_category, priority, is_active
        )
        SELECT :rule_id, :name, :description, :condition_kind,
               CAST(:condition_params AS jsonb), :target_category, :priority,
               :is_active
        WHERE NOT EXISTS (
            SELECT 1 FROM membership_rules WHERE rule_id = :rule_id
        )
        """
    )
    for rule in DEFAULT_RULES:
        op.execute(
            insert.bindparams(
                **{**rule, "condition_params": json.dumps(rule["condition_params"])}
            )
        )


def downgrade() -> None:
    # Remove only the rules we seeded (by id)
    delete = sa.text("DELETE FROM membership_rules WHERE rule_id = :rule_id")
    for rule in DEFAULT_RULES:
        op.execute(delete.bindparams(rule_id=rule["rule_id"]))
