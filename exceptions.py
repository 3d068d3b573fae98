# ============================================================================
# CLAUDE CONTEXT - EXCEPTIONS
# ============================================================================
# STATUS: Core - shared by every service wrapper
# PURPOSE: Custom exception hierarchy separating contract violations, retryable
#          store failures and terminal business failures
# EXPORTS: ContractViolationError, BusinessLogicError, VersionConflictError,
#          NonRetryableError, ResourceNotFoundError, ValidationError,
#          ServiceBusError, ConfigurationError
# DEPENDENCIES: None (standard library only)
# PATTERNS: Exception hierarchy for error categorization
# ENTRY_POINTS: Raised at wrapper boundaries and inside the retry core
# ============================================================================

"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

Within business failures the retry core cares about one more split:
failures flagged with NonRetryableError propagate immediately, every
other Exception is retried until the policy is exhausted. Exhaustion
re-raises the last failure itself - there is no wrapping exception.
"""


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.

    Examples:
        - Mutation batch is not a mapping
        - Store returns something other than a VersionedRecord
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.
    """
    pass


class VersionConflictError(BusinessLogicError):
    """
    Conditional write rejected because the record changed since it was read.

    Raised by record stores when the server answers HTTP 412 (precondition
    failed). The retry core treats it like any other transient failure: the
    next attempt re-reads the record and its version token.
    """

    def __init__(self, key=None, expected_version=None, message=None):
        self.key = key
        self.expected_version = expected_version
        if message is None:
            message = f"Version conflict on {key}: expected version {expected_version!r} is stale"
        super().__init__(message)


class NonRetryableError(BusinessLogicError):
    """
    Marker for failures that must not be retried.

    Raise (or subclass) this from an operation passed to
    RetryPolicyService.run / run_async to stop the loop immediately.
    """
    pass


class ServiceBusError(BusinessLogicError):
    """
    Service Bus communication failures.

    Examples:
        - Queue or topic not found
        - Message body is not valid JSON
    """
    pass


class ResourceNotFoundError(NonRetryableError):
    """
    Requested resource does not exist.

    Retrying a 404 never helps, so this is non-retryable.
    """
    pass


class ValidationError(NonRetryableError):
    """
    Business validation failed.

    Note: This is different from ContractViolationError.
    This is for bad arguments reaching a wrapper, not type contracts.

    Examples:
        - Partition key of an unsupported type
        - Page size above the Table Storage limit
        - Empty or non-seekable upload stream
    """
    pass


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing required environment variables
        - Unknown Cosmos container reference
        - Malformed container list JSON
    """
    pass
