import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import TYPE_CHECKING, AsyncGenerator, Dict, Generator, Iterable, List, Optional
from unittest.mock import AsyncMock
from uuid import uuid4

if TYPE_CHECKING:
    from app.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import CategoryUpdateError, MemberNotFoundError
from app.main import app
from app.schemas.member import MemberSnapshot

# Fixed evaluation instant shared by the rule tests
NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def event_loop() -> Generator:
    """Create a single event loop for all async tests."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    redis.aclose = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_rule(
    rule_id: str,
    condition_kind: str,
    target_category: str,
    priority: int,
    condition_params: Optional[dict] = None,
    is_active: bool = True,
    name: Optional[str] = None,
) -> SimpleNamespace:
    """A rule row with the attributes the engine reads."""
    return SimpleNamespace(
        rule_id=rule_id,
        name=name or rule_id.replace("_", " ").title(),
        description=None,
        condition_kind=condition_kind,
        condition_params=condition_params or {},
        target_category=target_category,
        priority=priority,
        is_active=is_active,
    )


def senator_rule(priority: int = 2) -> SimpleNamespace:
    return make_rule("senator_rule", "has-senator-id", "honorary", priority)


def age_rule(priority: int = 3, min_age=40) -> SimpleNamespace:
    return make_rule(
        "age_rule", "age-at-least", "affiliate", priority, {"min_age": min_age}
    )


def new_member_rule(priority: int = 1) -> SimpleNamespace:
    return make_rule("new_member_rule", "is-new-registration", "associate", priority)


def make_member(member_id: str, **overrides) -> MemberSnapshot:
    data = {
        "member_id": member_id,
        "name": f"Member {member_id}",
        "current_category": "active",
        "registered_at": datetime(2020, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return MemberSnapshot(**data)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeRuleRepo:
    """Rule registry over a plain list."""

    def __init__(self, rules: Iterable[SimpleNamespace] = ()) -> None:
        self.rules = list(rules)
        self.commits = 0

    async def list_rules(self):
        return sorted(self.rules, key=lambda r: (r.priority, r.rule_id))

    async def get_active_rules(self):
        return [r for r in await self.list_rules() if r.is_active]

    async def get_by_id(self, rule_id: str):
        return next((r for r in self.rules if r.rule_id == rule_id), None)

    async def count_all(self) -> int:
        return len(self.rules)

    async def count_active(self) -> int:
        return sum(1 for r in self.rules if r.is_active)

    async def set_active(self, rule, is_active: bool) -> None:
        rule.is_active = is_active

    async def commit(self) -> None:
        self.commits += 1


class FakeMemberDirectory:
    """Member directory over a dict, recording every category write.

    Ids in *failing_ids* reject their write; *delay* makes every write
    yield to the event loop for that long.
    """

    def __init__(
        self,
        members: Iterable[MemberSnapshot] = (),
        failing_ids: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.members: Dict[str, MemberSnapshot] = {m.member_id: m for m in members}
        self.failing_ids = set(failing_ids)
        self.delay = delay
        self.writes: List[tuple] = []

    def category_of(self, member_id: str) -> Optional[str]:
        return self.members[member_id].current_category

    async def list_members(self) -> List[MemberSnapshot]:
        return [self.members[mid] for mid in sorted(self.members)]

    async def get_by_ids(self, member_ids) -> List[MemberSnapshot]:
        return [self.members[mid] for mid in member_ids if mid in self.members]

    async def set_category(
        self, member_id: str, new_category: str, reason: str, assigned_by: str
    ) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if member_id in self.failing_ids:
            raise CategoryUpdateError("directory rejected the write")
        if member_id not in self.members:
            raise MemberNotFoundError(f"Member {member_id} not found")
        self.members[member_id] = self.members[member_id].model_copy(
            update={"current_category": new_category}
        )
        self.writes.append((member_id, new_category, reason, assigned_by))


class FakeChangeLog:
    """Append-only change log held in memory."""

    def __init__(self) -> None:
        self.entries: List[SimpleNamespace] = []
        self.commits = 0

    async def append(self, **kwargs) -> SimpleNamespace:
        entry = SimpleNamespace(log_id=uuid4(), **kwargs)
        self.entries.append(entry)
        return entry

    async def commit(self) -> None:
        self.commits += 1

    async def recent(self, limit: int) -> List[SimpleNamespace]:
        ordered = sorted(self.entries, key=lambda e: e.executed_at, reverse=True)
        return ordered[:limit]

    async def count_all(self) -> int:
        return len(self.entries)

    async def count_since(self, since: datetime) -> int:
        return sum(1 for e in self.entries if e.executed_at >= since)


@pytest.fixture
def fixed_clock():
    return lambda: NOW
