from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from app.models.base import Base
from sqlalchemy.sql import func

from app.core.constants import CATEGORY_CHECK_CLAUSE, CONDITION_KIND_CHECK_CLAUSE


class MembershipRule(Base):
    """Catalogue entry mapping a built-in condition to a target category.

    Rules are seeded from ``DEFAULT_RULES`` once per deployment and only
    toggled active/inactive afterwards.  ``priority`` orders evaluation
    within a pass, lowest first.
    """

    __tablename__ = "membership_rules"
    rule_id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    condition_kind = Column(String(50), nullable=False)
    condition_params = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    target_category = Column(String(20), nullable=False)
    priority = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(CONDITION_KIND_CHECK_CLAUSE, name="ck_rule_condition_kind"),
        CheckConstraint(
            CATEGORY_CHECK_CLAUSE.format(col="target_category"),
            name="ck_rule_target_category",
        ),
    )
