from enum import Enum


class MembershipCategory(str, Enum):
    active = "active"
    associate = "associate"
    honorary = "honorary"
    affiliate = "affiliate"
    visitor = "visitor"
    alumni = "alumni"
    corporate = "corporate"
    student = "student"


class ConditionKind(str, Enum):
    """Closed set of built-in rule conditions.

    Adding a kind means adding a member here and a predicate in
    ``app.services.rule_evaluator``; the evaluator's ``match`` is
    exhaustive over this enum.
    """

    HAS_SENATOR_ID = "has-senator-id"
    AGE_AT_LEAST = "age-at-least"
    IS_NEW_REGISTRATION = "is-new-registration"


class ConflictPolicy(str, Enum):
    """How lower-priority rules treat members changed earlier in a pass.

    ``sequential`` (the default) re-evaluates every rule against the
    category written by earlier rules, so an unchanged member ends every
    pass in the same category.

    ``first_match`` skips members already changed in the pass.  When two
    rules keep matching the same member, consecutive passes alternate
    between their targets and each pass writes another audit entry; use
    it only with rule sets whose conditions do not overlap.
    """

    sequential = "sequential"
    first_match = "first_match"
