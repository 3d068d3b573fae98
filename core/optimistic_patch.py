# ============================================================================
# CLAUDE CONTEXT - OPTIMISTIC PATCH SERVICE
# ============================================================================
# STATUS: Core - read / mutate / conditional write under the retry policy
# PURPOSE: Lost-update-free field patches against ETag-versioned stores
# EXPORTS: FieldMutation, resolve_mutations, OptimisticPatchService
# DEPENDENCIES: core.retry_policy, interfaces.record_store, util_logger, exceptions
# PATTERNS: Optimistic concurrency, fresh read per attempt
# ENTRY_POINTS: OptimisticPatchService.patch / patch_async
# ============================================================================

"""
Optimistic Patch Service.

Every attempt runs the full cycle

    READ (record + version) -> MUTATE (resolve values) -> CONDITIONAL WRITE

inside RetryPolicyService. A VersionConflictError from the write is an
ordinary retryable failure, so the next attempt re-reads the record and
recomputes the values against what is stored now. A version token is never
carried from one attempt to the next.

A mutation is either a literal value or a callable taking the freshly read
fields and returning the new value:

    patch(store, key, {
        "status": "done",
        "counter": lambda current: current["counter"] + 1,
    })

Callables receive a copy of the whole record, not just the fields being
patched, and are re-evaluated on every attempt. Any callable in the batch
is treated as a mutation function.
"""

import copy
from typing import Any, Callable, Dict, Mapping, Optional, Union

from core.retry_policy import RetryPolicyService
from exceptions import ContractViolationError
from interfaces.record_store import IAsyncRecordStore, IRecordStore, RecordKey, VersionedRecord
from util_logger import LoggerFactory, ComponentType

FieldMutation = Union[Any, Callable[[Mapping[str, Any]], Any]]


def resolve_mutations(mutations: Mapping[str, FieldMutation], current_fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Resolve a mutation batch against the fields of a freshly read record.

    Returns:
        Field name -> concrete value, ready for conditional_write
    """
    resolved = {}
    for name, mutation in mutations.items():
        if callable(mutation):
            # each callable gets its own copy so one mutation cannot leak into another
            resolved[name] = mutation(copy.deepcopy(dict(current_fields)))
        else:
            resolved[name] = mutation
    return resolved


class OptimisticPatchService:
    """
    Applies field mutations with optimistic concurrency.

    Example:
        patcher = OptimisticPatchService(RetryPolicyService())
        patcher.patch(store, RecordKey("tenant-1", "order-42"), {"status": "shipped"})
    """

    def __init__(self, retry_policy: Optional[RetryPolicyService] = None):
        self.retry_policy = retry_policy or RetryPolicyService()
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "OptimisticPatchService")

    def patch(self, store: IRecordStore, key: RecordKey, mutations: Mapping[str, FieldMutation]) -> bool:
        """
        Patch a record, retrying on version conflicts and store failures.

        Returns:
            True once a conditional write succeeds, False for an empty batch

        Raises:
            The last failure (usually VersionConflictError) when retries run out
        """
        if not self._has_mutations(key, mutations):
            return False

        attempt = [0]

        def _attempt():
            attempt[0] += 1
            record = self._checked(store.read(key), key)
            values = resolve_mutations(mutations, record.fields)
            new_version = store.conditional_write(key, values, expected_version=record.version)
            self._log_commit(key, attempt[0], record.version, new_version, values)

        self.retry_policy.run(_attempt, operation_name=f"patch {key.partition_key}/{key.record_id}")
        return True

    async def patch_async(self, store: IAsyncRecordStore, key: RecordKey, mutations: Mapping[str, FieldMutation]) -> bool:
        """Async variant of patch(); backoff waits are cancellable."""
        if not self._has_mutations(key, mutations):
            return False

        attempt = [0]

        async def _attempt():
            attempt[0] += 1
            record = self._checked(await store.read(key), key)
            values = resolve_mutations(mutations, record.fields)
            new_version = await store.conditional_write(key, values, expected_version=record.version)
            self._log_commit(key, attempt[0], record.version, new_version, values)

        await self.retry_policy.run_async(_attempt, operation_name=f"patch {key.partition_key}/{key.record_id}")
        return True

    def _has_mutations(self, key: RecordKey, mutations: Mapping[str, FieldMutation]) -> bool:
        if not isinstance(mutations, Mapping):
            raise ContractViolationError(
                f"mutations must be a mapping of field name to value or callable, got {type(mutations).__name__}"
            )
        if not mutations:
            self.logger.warning(f"⚠️ Empty mutation batch for {key.partition_key}/{key.record_id}, nothing to patch")
            return False
        return True

    @staticmethod
    def _checked(record: Any, key: RecordKey) -> VersionedRecord:
        if not isinstance(record, VersionedRecord):
            raise ContractViolationError(
                f"Record store returned {type(record).__name__} for {key}, expected VersionedRecord"
            )
        return record

    def _log_commit(self, key: RecordKey, attempt: int, old_version: str, new_version: str, values: Dict[str, Any]) -> None:
        self.logger.debug(
            f"✅ Patched {key.partition_key}/{key.record_id} on attempt {attempt}",
            extra={'custom_dimensions': {
                'partition_key': str(key.partition_key),
                'record_id': key.record_id,
                'attempt': attempt,
                'old_version': old_version,
                'new_version': new_version,
                'fields': sorted(values),
            }}
        )


__all__ = [
    'FieldMutation',
    'resolve_mutations',
    'OptimisticPatchService',
]
