from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Text
from app.models.base import Base
from sqlalchemy.sql import func

from app.core.constants import CATEGORY_CHECK_CLAUSE


class Member(Base):
    """Member record as held by the member directory.

    The rule engine only reads the profile attributes its conditions need
    and writes the category columns through
    ``MemberRepository.set_category``.  ``birth_date`` keeps the
    directory's ``dd-Mon-yyyy`` text format.
    """

    __tablename__ = "members"
    member_id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255))
    membership_category = Column(String(20))
    birth_date = Column(String(32))
    senator_id = Column(String(50))
    registered_at = Column(DateTime(timezone=True), server_default=func.now())

    category_reason = Column(Text)
    category_assigned_by = Column(String(50))
    category_assigned_at = Column(DateTime(timezone=True))
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_members_category", "membership_category"),
        CheckConstraint(
            "membership_category IS NULL OR "
            + CATEGORY_CHECK_CLAUSE.format(col="membership_category"),
            name="ck_member_category",
        ),
    )
