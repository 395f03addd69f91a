from datetime import datetime, timezone
from typing import List, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError

from app.core.exceptions import CategoryUpdateError, MemberNotFoundError
from app.models.member import Member
from app.repositories.base import BaseRepository
from app.schemas.member import MemberSnapshot


class MemberDirectoryGateway(Protocol):
    """What the rule engine needs from the member directory.

    Reads return per-run snapshots; the only write is a category change.
    """

    async def list_members(self) -> List[MemberSnapshot]: ...

    async def get_by_ids(self, member_ids: Sequence[str]) -> List[MemberSnapshot]: ...

    async def set_category(
        self, member_id: str, new_category: str, reason: str, assigned_by: str
    ) -> None: ...


def _to_snapshot(member: Member) -> MemberSnapshot:
    return MemberSnapshot(
        member_id=member.member_id,
        name=member.name,
        email=member.email,
        current_category=member.membership_category,
        birth_date=member.birth_date,
        senator_id=member.senator_id,
        registered_at=member.registered_at,
    )


class MemberRepository(BaseRepository):
    """SQL implementation of :class:`MemberDirectoryGateway`.

    Category writes are bulk UPDATEs that bypass the identity map, so
    reads always repopulate already-loaded rows.
    """

    async def list_members(self) -> List[MemberSnapshot]:
        """Snapshot every member, ordered by id for stable batch order."""
        result = await self._db.execute(
            select(Member)
            .order_by(Member.member_id)
            .execution_options(populate_existing=True)
        )
        return [_to_snapshot(m) for m in result.scalars().all()]

    async def get_by_ids(self, member_ids: Sequence[str]) -> List[MemberSnapshot]:
        """Snapshot the given members, preserving the caller's order.

        Unknown ids are silently left out; callers compare lengths.
        """
        if not member_ids:
            return []
        result = await self._db.execute(
            select(Member)
            .where(Member.member_id.in_(list(member_ids)))
            .execution_options(populate_existing=True)
        )
        by_id = {m.member_id: m for m in result.scalars().all()}
        return [_to_snapshot(by_id[mid]) for mid in member_ids if mid in by_id]

    async def set_category(
        self, member_id: str, new_category: str, reason: str, assigned_by: str
    ) -> None:
        """Write the membership category columns and nothing else.

        Runs inside a SAVEPOINT so a rejected write rolls back only this
        member, leaving the rest of the pass intact.  *assigned_by* is the
        run's trigger (``manual`` or ``system``), as in the audit entry.

        Raises :class:`MemberNotFoundError` for an unknown id and
        :class:`CategoryUpdateError` when the database rejects the write.
        """
        async with self._db.begin_nested():
            try:
                result = await self._db.execute(
                    update(Member)
                    .where(Member.member_id == member_id)
                    .values(
                        membership_category=new_category,
                        category_reason=reason,
                        category_assigned_by=assigned_by,
                        category_assigned_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
            except DBAPIError as exc:
                raise CategoryUpdateError(
                    f"Database rejected category {new_category!r}: {exc.orig}"
                ) from exc
            if result.rowcount == 0:
                raise MemberNotFoundError(f"Member {member_id} not found")
