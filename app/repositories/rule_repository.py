import logging
from typing import List, Optional

from sqlalchemy import select, func

from app.models.rule import MembershipRule
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class RuleRepository(BaseRepository):
    """Rule registry backed by the ``membership_rules`` table."""

    async def list_rules(self) -> List[MembershipRule]:
        """Return the whole catalogue in evaluation order."""
        result = await self._db.execute(
            select(MembershipRule).order_by(
                MembershipRule.priority, MembershipRule.rule_id
            )
        )
        return list(result.scalars().all())

    async def get_active_rules(self) -> List[MembershipRule]:
        """Return active rules ordered by ascending priority."""
        result = await self._db.execute(
            select(MembershipRule)
            .where(MembershipRule.is_active.is_(True))
            .order_by(MembershipRule.priority, MembershipRule.rule_id)
        )
        return list(result.scalars().all())

    async def get_by_id(self, rule_id: str) -> Optional[MembershipRule]:
        result = await self._db.execute(
            select(MembershipRule).where(MembershipRule.rule_id == rule_id)
        )
        return result.scalar_one_or_none()

    async def count_all(self) -> int:
        result = await self._db.execute(
            select(func.count()).select_from(MembershipRule)
        )
        return result.scalar() or 0

    async def count_active(self) -> int:
        result = await self._db.execute(
            select(func.count())
            .select_from(MembershipRule)
            .where(MembershipRule.is_active.is_(True))
        )
        return result.scalar() or 0

    async def set_active(self, rule: MembershipRule, is_active: bool) -> None:
        """Toggle a rule on or off; the catalogue is otherwise immutable."""
        rule.is_active = is_active

    async def seed_if_empty(self) -> int:
        """Insert the default rules when the table is empty.

        Idempotent: calling it on a table that already has rules is a
        cheap no-op.  Returns the number of rules inserted.

        The canonical rule definitions live in
        ``app.core.default_rules.DEFAULT_RULES``.
        """
        from app.core.default_rules import DEFAULT_RULES

        if await self.count_all():
            return 0

        logger.info("membership_rules table is empty, seeding defaults")
        for rule_data in DEFAULT_RULES:
            self._db.add(MembershipRule(**rule_data))
        await self._db.flush()
        logger.info("Seeded %d default membership rules", len(DEFAULT_RULES))
        return len(DEFAULT_RULES)
