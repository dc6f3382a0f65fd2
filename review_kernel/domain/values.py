"""
Values -- Closed vocabularies shared by every request kind.

Responsibility:
    Roles, actions, scopes and request kinds as ``str`` enums.  Per-kind
    status enums live with their module (``review_modules.<kind>.models``).

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - ValueError when an unknown string is converted to one of these enums
      (e.g. ``ReviewAction("approved")``).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum

from review_kernel.exceptions import InvalidRequestDataError


class ActorRole(str, Enum):
    """Role supplied by the identity provider for each call."""

    ADMIN = "admin"
    CONTRIBUTOR = "contributor"
    MINISTRY_LEADER = "ministry_leader"
    TREASURY = "treasury"
    FINANCE = "finance"
    MEMBER = "member"


class ReviewAction(str, Enum):
    """Every workflow action across all request kinds."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    DENY = "deny"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    UNAPPROVE = "unapprove"
    MOVE_TO_PENDING = "move_to_pending"
    FORWARD = "forward"
    COMPLETE = "complete"
    CANCEL = "cancel"


class ReviewScope(str, Enum):
    """Whether a recurring-event action targets one occurrence or the series."""

    SINGLE = "single"
    ALL = "all"


class RequestKind(str, Enum):
    EVENT = "event"
    EXPENSE = "expense"
    ALLOCATION = "allocation"


def coerce_amount(field_name: str, value: object) -> Decimal:
    """Convert ``value`` to Decimal, refusing floats and non-numeric input."""
    if isinstance(value, (float, bool)):
        raise InvalidRequestDataError(field_name, "must be a Decimal, int or numeric string")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidRequestDataError(field_name, f"not a number: {value!r}") from None
    if not amount.is_finite():
        raise InvalidRequestDataError(field_name, "must be finite")
    return amount
