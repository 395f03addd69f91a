from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Holds the session shared by the repositories of one unit of work.

    A request or a scheduled pass builds the rule, member and change-log
    repositories over the same ``AsyncSession``; whichever commits first
    commits them all.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def commit(self) -> None:
        await self._db.commit()
