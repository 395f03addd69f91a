"""create membership rule engine tables

Revision ID: a1c4e7f20b11
Revises:
Create Date: 2026-10-12 09:00:00.000000

Creates the member directory table, the rule catalogue, the append-only
change log and the single-row scheduler configuration.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b11"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_CATEGORIES = (
    "'active', 'affiliate', 'alumni', 'associate', "
    "'corporate', 'honorary', 'student', 'visitor'"
)
_CONDITION_KINDS = "'age-at-least', 'has-senator-id', 'is-new-registration'"


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("member_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("membership_category", sa.String(20)),
        sa.Column("birth_date", sa.String(32)),
        sa.Column("senator_id", sa.String(50)),
        sa.Column(
            "registered_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column("category_reason", sa.Text()),
        sa.Column("category_assigned_by", sa.String(50)),
        sa.Column("category_assigned_at", sa.DateTime(timezone=True)),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            f"membership_category IS NULL OR membership_category IN ({_CATEGORIES})",
            name="ck_member_category",
        ),
    )
    op.create_index("idx_members_category", "members", ["membership_category"])

    op.create_table(
        "membership_rules",
        sa.Column("rule_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("condition_kind", sa.String(50), nullable=False),
        sa.Column(
            "condition_params",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("target_category", sa.String(20), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            f"condition_kind IN ({_CONDITION_KINDS})", name="ck_rule_condition_kind"
        ),
        sa.CheckConstraint(
            f"target_category IN ({_CATEGORIES})", name="ck_rule_target_category"
        ),
    )

    op.create_table(
        "rule_change_logs",
        sa.Column(
            "log_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.func.gen_random_uuid(),
        ),
        sa.Column(
            "executed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("member_id", sa.String(64), nullable=False),
        sa.Column("member_name", sa.String(200), nullable=False),
        sa.Column("old_category", sa.String(20), nullable=False),
        sa.Column("new_category", sa.String(20), nullable=False),
        sa.Column("rule_id", sa.String(64), nullable=False),
        sa.Column("rule_name", sa.String(100), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column(
            "executed_by", sa.String(50), nullable=False, server_default="system"
        ),
    )
    op.create_index(
        "idx_rule_change_logs_executed_at",
        "rule_change_logs",
        [sa.text("executed_at DESC")],
    )
    op.create_index("idx_rule_change_logs_member", "rule_change_logs", ["member_id"])

    op.create_table(
        "scheduler_config",
        sa.Column("config_id", sa.Integer(), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("last_execution", sa.DateTime(timezone=True)),
        sa.Column("next_execution", sa.DateTime(timezone=True)),
        sa.CheckConstraint("config_id = 1", name="ck_scheduler_config_singleton"),
        sa.CheckConstraint(
            "interval_seconds > 0", name="ck_scheduler_interval_positive"
        ),
    )


def downgrade() -> None:
    op.drop_table("scheduler_config")
    op.drop_index("idx_rule_change_logs_member", table_name="rule_change_logs")
    op.drop_index("idx_rule_change_logs_executed_at", table_name="rule_change_logs")
    op.drop_table("rule_change_logs")
    op.drop_table("membership_rules")
    op.drop_index("idx_members_category", table_name="members")
    op.drop_table("members")
