import asyncio

import pytest

from app.core.config import settings
from app.core.exceptions import (
    EngineBusyError,
    InvalidRuleConfigError,
    RuleNotFoundError,
)
from app.schemas.common import ConflictPolicy
from app.services.execution_guard import ExecutionGuard
from app.services.rule_executor import RuleExecutor

from conftest import (
    NOW,
    FakeChangeLog,
    FakeMemberDirectory,
    FakeRuleRepo,
    age_rule,
    make_member,
    new_member_rule,
    senator_rule,
)


def _build(rules, members, policy=ConflictPolicy.sequential, guard=None, **directory_kwargs):
    directory = FakeMemberDirectory(members, **directory_kwargs)
    change_log = FakeChangeLog()
    executor = RuleExecutor(
        rule_repo=FakeRuleRepo(rules),
        member_directory=directory,
        change_log=change_log,
        guard=guard or ExecutionGuard(),
        conflict_policy=policy,
        clock=lambda: NOW,
    )
    return executor, directory, change_log


def _senior_senator():
    return make_member(
        "m1",
        name="Tan Wei Ming",
        current_category="active",
        senator_id="SEN-10233",
        birth_date="15-Jun-1981",
    )


class TestConflictResolution:
    """A member matching several rules in one pass."""

    @pytest.mark.asyncio
    async def test_first_match_keeps_higher_priority_result(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=2), age_rule(priority=3)],
            [_senior_senator()],
            policy=ConflictPolicy.first_match,
        )

        results = await executor.run_all()

        assert [r.rule_id for r in results] == ["senator_rule", "age_rule"]
        assert results[0].affected_members == 1
        assert results[0].success_count == 1
        assert results[1].affected_members == 0
        assert directory.category_of("m1") == "honorary"
        assert len(change_log.entries) == 1
        entry = change_log.entries[0]
        assert (entry.old_category, entry.new_category) == ("active", "honorary")
        assert entry.rule_id == "senator_rule"
        assert entry.reason == "senator ID SEN-10233"

    @pytest.mark.asyncio
    async def test_first_match_follows_priority_not_catalogue_order(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=2), age_rule(priority=1)],
            [_senior_senator()],
            policy=ConflictPolicy.first_match,
        )

        results = await executor.run_all()

        assert [r.rule_id for r in results] == ["age_rule", "senator_rule"]
        assert directory.category_of("m1") == "affiliate"
        assert len(change_log.entries) == 1
        assert change_log.entries[0].new_category == "affiliate"

    @pytest.mark.asyncio
    async def test_sequential_lets_later_rules_see_earlier_writes(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=2), age_rule(priority=3)],
            [_senior_senator()],
            policy=ConflictPolicy.sequential,
        )

        await executor.run_all()

        assert directory.category_of("m1") == "affiliate"
        transitions = [(e.old_category, e.new_category) for e in change_log.entries]
        assert transitions == [("active", "honorary"), ("honorary", "affiliate")]

    @pytest.mark.asyncio
    async def test_sequential_reversed_priority(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=2), age_rule(priority=1)],
            [_senior_senator()],
            policy=ConflictPolicy.sequential,
        )

        await executor.run_all()

        assert directory.category_of("m1") == "honorary"
        transitions = [(e.old_category, e.new_category) for e in change_log.entries]
        assert transitions == [("active", "affiliate"), ("affiliate", "honorary")]

    @pytest.mark.asyncio
    async def test_default_policy_ends_every_pass_in_same_category(self):
        directory = FakeMemberDirectory([_senior_senator()])
        change_log = FakeChangeLog()
        executor = RuleExecutor(
            rule_repo=FakeRuleRepo([senator_rule(priority=2), age_rule(priority=3)]),
            member_directory=directory,
            change_log=change_log,
            guard=ExecutionGuard(),
            clock=lambda: NOW,
        )

        categories = []
        for _ in range(4):
            await executor.run_all()
            categories.append(directory.category_of("m1"))

        assert categories == ["affiliate"] * 4
        assert all(e.new_category in ("honorary", "affiliate") for e in change_log.entries)

    def test_configured_default_is_sequential(self):
        assert ConflictPolicy(settings.RULE_CONFLICT_POLICY) is ConflictPolicy.sequential

    @pytest.mark.asyncio
    async def test_first_match_alternates_with_overlapping_rules(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=2), age_rule(priority=3)],
            [_senior_senator()],
            policy=ConflictPolicy.first_match,
        )

        categories = []
        for _ in range(4):
            await executor.run_all()
            categories.append(directory.category_of("m1"))

        assert categories == ["honorary", "affiliate", "honorary", "affiliate"]
        assert len(change_log.entries) == 4


class TestBatchExecution:
    @pytest.mark.asyncio
    async def test_second_run_of_same_rule_changes_nothing(self):
        members = [
            _senior_senator(),
            make_member("m2", senator_id="SEN-2", current_category="honorary"),
            make_member("m3"),
        ]
        executor, directory, change_log = _build([senator_rule()], members)

        first = await executor.run_one("senator_rule")
        second = await executor.run_one("senator_rule")

        assert first.success_count == 1
        assert second.affected_members == 0
        assert second.success_count == 0
        assert len(change_log.entries) == 1
        assert directory.category_of("m3") == "active"

    @pytest.mark.asyncio
    async def test_full_pass_is_stable_for_disjoint_matches(self):
        members = [
            make_member("m1", current_category=None),
            make_member("m2", birth_date="15-Jun-1986"),
            make_member("m3", birth_date="16-Jun-1986"),
        ]
        executor, directory, change_log = _build(
            [new_member_rule(), senator_rule(), age_rule()], members
        )

        await executor.run_all()
        second = await executor.run_all()

        assert len(change_log.entries) == 2
        assert all(e.reason and e.old_category != e.new_category for e in change_log.entries)
        assert all(r.affected_members == 0 for r in second)
        assert directory.category_of("m1") == "associate"
        assert directory.category_of("m2") == "affiliate"
        assert directory.category_of("m3") == "active"

    @pytest.mark.asyncio
    async def test_one_failed_write_does_not_stop_the_batch(self):
        members = [
            make_member(f"m{i}", senator_id=f"SEN-{i}") for i in range(1, 5)
        ]
        executor, directory, change_log = _build(
            [senator_rule()], members, failing_ids={"m3"}
        )

        [result] = await executor.run_all()

        assert result.affected_members == 4
        assert result.success_count == 3
        assert result.failed_count == 1
        assert len(result.errors) == 1
        assert "m3" in result.errors[0]
        assert "directory rejected the write" in result.errors[0]
        assert directory.category_of("m3") == "active"
        assert sorted(e.member_id for e in change_log.entries) == ["m1", "m2", "m4"]

    @pytest.mark.asyncio
    async def test_counts_always_add_up(self):
        members = [
            make_member("m1", senator_id="SEN-1"),
            make_member("m2", senator_id="SEN-2"),
            make_member("m3", senator_id="SEN-3", current_category="honorary"),
            make_member("m4"),
        ]
        executor, _, _ = _build([senator_rule()], members, failing_ids={"m2"})

        [result] = await executor.run_all()

        assert result.affected_members == 2
        assert result.success_count + result.failed_count == result.affected_members
        assert result.failed_count == len(result.errors)

    @pytest.mark.asyncio
    async def test_unclassified_member_logged_as_unassigned(self):
        executor, directory, change_log = _build(
            [new_member_rule()], [make_member("m1", current_category=None)]
        )

        await executor.run_all(executed_by="system")

        assert directory.category_of("m1") == "associate"
        entry = change_log.entries[0]
        assert entry.old_category == "unassigned"
        assert entry.executed_by == "system"
        assert entry.executed_at == NOW

    @pytest.mark.asyncio
    async def test_write_reason_names_the_rule(self):
        executor, directory, _ = _build([senator_rule()], [_senior_senator()])

        await executor.run_all()

        [(member_id, category, reason, assigned_by)] = directory.writes
        assert (member_id, category) == ("m1", "honorary")
        assert reason.startswith("Senator Rule: ")
        assert assigned_by == "manual"

    @pytest.mark.asyncio
    async def test_scheduled_write_is_assigned_by_system(self):
        executor, directory, change_log = _build([senator_rule()], [_senior_senator()])

        await executor.run_all(executed_by="system")

        assert [w[3] for w in directory.writes] == ["system"]
        assert change_log.entries[0].executed_by == "system"

    @pytest.mark.asyncio
    async def test_inactive_rules_are_skipped(self):
        inactive = senator_rule()
        inactive.is_active = False
        executor, directory, change_log = _build([inactive], [_senior_senator()])

        assert await executor.run_all() == []
        assert change_log.entries == []

    @pytest.mark.asyncio
    async def test_invalid_rule_aborts_before_any_write(self):
        executor, directory, change_log = _build(
            [senator_rule(priority=1), age_rule(priority=2, min_age="forty")],
            [_senior_senator()],
        )

        with pytest.raises(InvalidRuleConfigError):
            await executor.run_all()

        assert directory.writes == []
        assert change_log.entries == []


class TestSingleRule:
    @pytest.mark.asyncio
    async def test_unknown_rule_raises_without_writes(self):
        executor, directory, change_log = _build([senator_rule()], [_senior_senator()])

        with pytest.raises(RuleNotFoundError):
            await executor.run_one("no_such_rule")

        assert directory.writes == []
        assert change_log.entries == []

    @pytest.mark.asyncio
    async def test_run_one_ignores_other_rules(self):
        executor, directory, _ = _build(
            [senator_rule(), age_rule()], [_senior_senator()]
        )

        result = await executor.run_one("age_rule")

        assert result.rule_id == "age_rule"
        assert result.success_count == 1
        assert directory.category_of("m1") == "affiliate"

    @pytest.mark.asyncio
    async def test_subset_reports_missing_ids(self):
        members = [
            make_member("m1", senator_id="SEN-1"),
            make_member("m2", senator_id="SEN-2"),
        ]
        executor, directory, change_log = _build([senator_rule()], members)

        result = await executor.run_one_for_subset("senator_rule", ["m1", "ghost", "m1"])

        assert result.affected_members == 1
        assert result.success_count == 1
        assert result.failed_count == 0
        assert result.errors == ["Member ghost not found"]
        assert directory.category_of("m2") == "active"
        assert [e.member_id for e in change_log.entries] == ["m1"]

    @pytest.mark.asyncio
    async def test_preview_lists_members_without_writing(self):
        members = [
            make_member("m1", senator_id="SEN-1"),
            make_member("m2", senator_id="SEN-2", current_category="honorary"),
            make_member("m3"),
        ]
        guard = ExecutionGuard()
        executor, directory, change_log = _build([senator_rule()], members, guard=guard)

        async with guard.hold("manual"):
            preview = await executor.preview("senator_rule")

        assert [m.member_id for m in preview] == ["m1"]
        assert directory.writes == []
        assert change_log.entries == []


class TestOverlapProtection:
    @pytest.mark.asyncio
    async def test_concurrent_runs_are_rejected(self):
        members = [make_member(f"m{i}", senator_id=f"SEN-{i}") for i in range(1, 4)]
        executor, directory, change_log = _build(
            [senator_rule()], members, delay=0.01
        )

        outcomes = await asyncio.gather(
            executor.run_all(), executor.run_all(), return_exceptions=True
        )

        busy = [o for o in outcomes if isinstance(o, EngineBusyError)]
        completed = [o for o in outcomes if isinstance(o, list)]
        assert len(busy) == 1
        assert len(completed) == 1
        assert len(change_log.entries) == 3
        assert len(directory.writes) == 3

    @pytest.mark.asyncio
    async def test_guard_is_released_after_a_run(self):
        guard = ExecutionGuard()
        executor, _, _ = _build([senator_rule()], [_senior_senator()], guard=guard)

        await executor.run_all()

        assert guard.busy is False
        await executor.run_one("senator_rule")

    @pytest.mark.asyncio
    async def test_busy_guard_rejects_subset_run(self):
        guard = ExecutionGuard()
        executor, directory, _ = _build([senator_rule()], [_senior_senator()], guard=guard)

        async with guard.hold("system"):
            with pytest.raises(EngineBusyError):
                await executor.run_one_for_subset("senator_rule", ["m1"])

        assert directory.writes == []
