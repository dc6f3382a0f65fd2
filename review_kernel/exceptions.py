"""
Typed Exception Hierarchy for the Review Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The UI layer must turn every workflow failure into an actionable message
("reason required", "someone else already reviewed this").  Parsing
message strings for that is fragile, so every error:

  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Example:
    try:
        orchestrator.review(request_id, ReviewAction.REJECT, actor_id, role)
    except MissingReasonError as e:
        show_field_error("notes", e.code)
    except StaleStateError as e:
        reload_and_warn(e.request_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReviewKernelError (base)
    |
    +-- WorkflowError                 -- precondition failures, never partial writes
    |   +-- InvalidTransitionError
    |   +-- ForbiddenError
    |   +-- MissingReasonError
    |   +-- InvalidScopeError
    |   +-- InvalidAmountError
    |   +-- StaleStateError
    |   +-- RequestNotFoundError
    |
    +-- ValidationError               -- bad request content at creation / edit
    |   +-- InvalidRequestDataError
    |   +-- InvalidSeriesError
    |   +-- InvalidBreakdownError
    |   +-- ImmutableRecordError
    |
    +-- IntegrityError
    |   +-- AuditChainBrokenError
    |   +-- ImmutabilityViolationError
    |
    +-- NotificationDeliveryError     -- raised by dispatchers, contained by the relay

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                  | When Raised
-------------|-----------------------|---------------------------------------------
Workflow     | INVALID_TRANSITION    | No transition for (status, action)
             | FORBIDDEN             | Transition exists, actor lacks stage authority
             | MISSING_REASON        | Denial/rejection without notes
             | INVALID_SCOPE         | scope=all on a non-recurring record
             | INVALID_AMOUNT        | Approved amount outside [0, requested]
             | STALE_STATE           | Concurrent modification detected
             | NOT_FOUND             | Request id unknown in this organization
-------------|-----------------------|---------------------------------------------
Validation   | INVALID_REQUEST_DATA  | Field-level content violation
             | INVALID_SERIES        | Broken recurring-series linkage
             | INVALID_BREAKDOWN     | Allocation period breakdown inconsistent
             | IMMUTABLE_RECORD      | Content edit outside draft
-------------|-----------------------|---------------------------------------------
Integrity    | AUDIT_CHAIN_BROKEN    | History hash chain validation failed
             | IMMUTABILITY_VIOLATION| UPDATE/DELETE on append-only history
-------------|-----------------------|---------------------------------------------
Notification | NOTIFICATION_FAILED   | Dispatcher could not deliver a message

===============================================================================
"""


class ReviewKernelError(Exception):
    """
    Base exception for all review kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "REVIEW_KERNEL_ERROR"


# Workflow exceptions


class WorkflowError(ReviewKernelError):
    """Base exception for review workflow precondition failures."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition exists for the action from the record's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, status: str, action: str):
        self.workflow = workflow
        self.status = status
        self.action = action
        super().__init__(
            f"No transition for action '{action}' from status '{status}' "
            f"in workflow {workflow}"
        )


class ForbiddenError(WorkflowError):
    """The actor lacks stage authority for an otherwise legal transition."""

    code: str = "FORBIDDEN"

    def __init__(self, action: str, status: str, actor_role: str, reason: str):
        self.action = action
        self.status = status
        self.actor_role = actor_role
        self.reason = reason
        super().__init__(
            f"Role '{actor_role}' may not '{action}' from '{status}': {reason}"
        )


class MissingReasonError(WorkflowError):
    """A denial or rejection was requested without notes."""

    code: str = "MISSING_REASON"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Action '{action}' requires a non-empty reason")


class InvalidScopeError(WorkflowError):
    """Series scope was requested where it does not apply."""

    code: str = "INVALID_SCOPE"

    def __init__(self, request_id: str, scope: str, reason: str):
        self.request_id = request_id
        self.scope = scope
        self.reason = reason
        super().__init__(f"Scope '{scope}' invalid for request {request_id}: {reason}")


class InvalidAmountError(WorkflowError):
    """An approved amount falls outside [0, requested]."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, approved_amount: str, requested_amount: str):
        self.approved_amount = approved_amount
        self.requested_amount = requested_amount
        super().__init__(
            f"Approved amount {approved_amount} must be between 0 and "
            f"the requested amount {requested_amount}"
        )


class StaleStateError(WorkflowError):
    """The record changed under the caller (optimistic version conflict)."""

    code: str = "STALE_STATE"

    def __init__(
        self,
        request_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.request_id = request_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if expected_version is not None:
            detail = f"expected version {expected_version}, found {actual_version}"
        else:
            detail = "record was modified by another reviewer"
        super().__init__(f"Stale state on request {request_id}: {detail}")


class RequestNotFoundError(WorkflowError):
    """Request with given ID was not found in the organization."""

    code: str = "NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


# Validation exceptions


class ValidationError(ReviewKernelError):
    """Base exception for request content validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidRequestDataError(ValidationError):
    """A content field violates its constraint."""

    code: str = "INVALID_REQUEST_DATA"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidSeriesError(ValidationError):
    """Recurring-series linkage is inconsistent."""

    code: str = "INVALID_SERIES"

    def __init__(self, request_id: str, reason: str):
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"Invalid series for request {request_id}: {reason}")


class InvalidBreakdownError(ValidationError):
    """An allocation period breakdown does not match its period type."""

    code: str = "INVALID_BREAKDOWN"

    def __init__(self, period_type: str, reason: str):
        self.period_type = period_type
        self.reason = reason
        super().__init__(f"Invalid {period_type} breakdown: {reason}")


class ImmutableRecordError(ValidationError):
    """Content edit attempted after the record left draft."""

    code: str = "IMMUTABLE_RECORD"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Request {request_id} is '{status}'; content is editable only in draft"
        )


# Integrity exceptions


class IntegrityError(ReviewKernelError):
    """Base exception for audit integrity failures."""

    code: str = "INTEGRITY_ERROR"


class AuditChainBrokenError(IntegrityError):
    """History hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, request_id: str, seq: int, expected_hash: str, actual_hash: str):
        self.request_id = request_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"History chain broken for request {request_id} at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


class ImmutabilityViolationError(IntegrityError):
    """Attempted to modify or delete an append-only row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Notification exceptions


class NotificationDeliveryError(ReviewKernelError):
    """A dispatcher could not deliver a message."""

    code: str = "NOTIFICATION_FAILED"

    def __init__(self, recipient: str, template: str, reason: str):
        self.recipient = recipient
        self.template = template
        self.reason = reason
        super().__init__(f"Failed to send {template} to {recipient}: {reason}")
