"""Member snapshot read by the rule engine."""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class MemberSnapshot(BaseModel):
    """The subset of a member record that rules inspect.

    ``birth_date`` is kept as stored by the member directory (usually a
    ``dd-Mon-yyyy`` string) so malformed values reach the evaluator and
    are treated as a non-match there rather than failing the whole read.
    """

    model_config = ConfigDict(from_attributes=True)

    member_id: str
    name: str
    email: Optional[str] = None
    current_category: Optional[str] = None
    birth_date: Optional[Union[date, str]] = None
    senator_id: Optional[str] = None
    registered_at: Optional[datetime] = None
