"""Pure evaluation of membership rules against member snapshots.

Each ``ConditionKind`` has its own predicate.  A predicate returns a
human-readable reason when the member matches and ``None`` otherwise;
missing or malformed member attributes are a non-match, never an error.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from typing_extensions import assert_never

from app.core.constants import DEFAULT_MIN_AGE
from app.core.exceptions import InvalidRuleConfigError
from app.schemas.common import ConditionKind
from app.schemas.member import MemberSnapshot
from app.schemas.rule import RuleEvaluation

logger = logging.getLogger(__name__)

# The member directory stores dd-Mon-yyyy; older imports used ISO dates
_BIRTH_DATE_FORMATS = ("%d-%b-%Y", "%Y-%m-%d")

_NO_MATCH = RuleEvaluation(matches=False)


def parse_birth_date(raw: Union[date, str, None]) -> Optional[date]:
    """Return the birth date as a ``date``, or ``None`` if unusable."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    value = str(raw).strip()
    if not value:
        return None
    for fmt in _BIRTH_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def age_on(birth_date: date, today: date) -> int:
    """Whole years completed between *birth_date* and *today*."""
    before_birthday = (today.month, today.day) < (birth_date.month, birth_date.day)
    return today.year - birth_date.year - int(before_birthday)


# ---------------------------------------------------------------------------
# Condition predicates
# ---------------------------------------------------------------------------


def _has_senator_id(
    member: MemberSnapshot, params: Dict[str, Any], now: datetime
) -> Optional[str]:
    senator_id = (member.senator_id or "").strip()
    if not senator_id:
        return None
    return f"senator ID {senator_id}"


def _age_at_least(
    member: MemberSnapshot, params: Dict[str, Any], now: datetime
) -> Optional[str]:
    min_age = params.get("min_age", DEFAULT_MIN_AGE)
    if isinstance(min_age, bool) or not isinstance(min_age, int):
        raise InvalidRuleConfigError(f"min_age must be an integer, got {min_age!r}")

    birth_date = parse_birth_date(member.birth_date)
    if birth_date is None:
        if member.birth_date:
            logger.debug(
                "Unparseable birth date %r for member %s",
                member.birth_date,
                member.member_id,
            )
        return None

    age = age_on(birth_date, now.date())
    if age < min_age:
        return None
    return f"age {age} >= {min_age}"


def _is_new_registration(
    member: MemberSnapshot, params: Dict[str, Any], now: datetime
) -> Optional[str]:
    if member.current_category:
        return None

    within_days = params.get("within_days")
    if within_days is None:
        return "new registration without category"

    registered_at = member.registered_at
    if registered_at is None:
        return None
    if registered_at.tzinfo is None:
        registered_at = registered_at.replace(tzinfo=timezone.utc)
    if now - registered_at > timedelta(days=within_days):
        return None
    days = max((now - registered_at).days, 0)
    return f"new registration {days} day(s) ago without category"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _condition_reason(
    kind: ConditionKind,
    member: MemberSnapshot,
    params: Dict[str, Any],
    now: datetime,
) -> Optional[str]:
    match kind:
        case ConditionKind.HAS_SENATOR_ID:
            return _has_senator_id(member, params, now)
        case ConditionKind.AGE_AT_LEAST:
            return _age_at_least(member, params, now)
        case ConditionKind.IS_NEW_REGISTRATION:
            return _is_new_registration(member, params, now)
        case _:
            assert_never(kind)


def condition_kind_of(rule: Any) -> ConditionKind:
    """Resolve a rule's stored ``condition_kind`` to the enum."""
    try:
        return ConditionKind(rule.condition_kind)
    except ValueError:
        raise InvalidRuleConfigError(
            f"Rule {rule.rule_id} has unknown condition kind {rule.condition_kind!r}"
        )


def validate_rule(rule: Any) -> ConditionKind:
    """Check a rule's kind and parameters before any member is touched."""
    kind = condition_kind_of(rule)
    params = rule.condition_params or {}
    match kind:
        case ConditionKind.AGE_AT_LEAST:
            min_age = params.get("min_age", DEFAULT_MIN_AGE)
            if isinstance(min_age, bool) or not isinstance(min_age, int) or min_age < 0:
                raise InvalidRuleConfigError(
                    f"Rule {rule.rule_id}: min_age must be a non-negative integer"
                )
        case ConditionKind.IS_NEW_REGISTRATION:
            within_days = params.get("within_days")
            if within_days is not None and (
                isinstance(within_days, bool)
                or not isinstance(within_days, int)
                or within_days < 0
            ):
                raise InvalidRuleConfigError(
                    f"Rule {rule.rule_id}: within_days must be a non-negative integer"
                )
        case ConditionKind.HAS_SENATOR_ID:
            pass
        case _:
            assert_never(kind)
    return kind


def evaluate_rule(rule: Any, member: MemberSnapshot, now: datetime) -> RuleEvaluation:
    """Evaluate *rule* against *member* at the instant *now*.

    Side-effect free; the batch executor passes the same *now* for every
    member of a run so age-based rules stay consistent within it.  The
    result says whether the condition holds; whether the member is
    already in the target category is the caller's concern.
    """
    kind = condition_kind_of(rule)
    reason = _condition_reason(kind, member, rule.condition_params or {}, now)
    if reason is None:
        return _NO_MATCH
    return RuleEvaluation(
        matches=True,
        target_category=rule.target_category,
        reason=reason,
    )


def needs_change(rule: Any, member: MemberSnapshot, now: datetime) -> RuleEvaluation:
    """Like :func:`evaluate_rule`, but a member already in the target
    category counts as a non-match.

    Used for previews and by the executor to decide which members a rule
    would actually reclassify.
    """
    evaluation = evaluate_rule(rule, member, now)
    if evaluation.matches and evaluation.target_category == member.current_category:
        return _NO_MATCH
    return evaluation
