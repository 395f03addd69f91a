class MembershipEngineError(Exception):
    """Base class for all rule-engine domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except MembershipEngineError`` clause can catch any domain
    error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class RuleNotFoundError(MembershipEngineError):
    """Raised when a requested rule id is not in the registry."""

    def __init__(self, detail: str = "Rule not found"):
        super().__init__(detail)


class InvalidRuleConfigError(MembershipEngineError):
    """Raised when a rule definition carries unusable parameters."""

    def __init__(self, detail: str = "Invalid rule configuration"):
        super().__init__(detail)


class EngineBusyError(MembershipEngineError):
    """Raised when a rule run is requested while another one is in flight.

    The condition is transient; callers may retry once the current run
    has finished.
    """

    retryable = True

    def __init__(self, detail: str = "A rule execution is already in progress"):
        super().__init__(detail)


class SchedulerDisabledError(MembershipEngineError):
    """Raised when starting a scheduler whose configuration is disabled."""

    def __init__(self, detail: str = "Scheduler is disabled"):
        super().__init__(detail)


class MemberNotFoundError(MembershipEngineError):
    """Raised by the member directory when a member id does not exist."""

    def __init__(self, detail: str = "Member not found"):
        super().__init__(detail)


class CategoryUpdateError(MembershipEngineError):
    """Raised when the member directory rejects a category write."""

    def __init__(self, detail: str = "Category update failed"):
        super().__init__(detail)
