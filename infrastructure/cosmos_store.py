# ============================================================================
# CLAUDE CONTEXT - COSMOS RECORD STORE
# ============================================================================
# STATUS: Infrastructure - IRecordStore over a Cosmos DB container
# PURPOSE: Read item + _etag, conditional partial update guarded by the _etag
# EXPORTS: CosmosRecordStore, AsyncCosmosRecordStore, build_patch_operations
# DEPENDENCIES: azure-cosmos (sync + aio), azure-core
# PATTERNS: Adapter, error translation (412 -> VersionConflictError)
# ENTRY_POINTS: CosmosDbRepository.patch_atomic
# ============================================================================

"""
Cosmos DB record stores.

Both stores wrap an already-built ContainerProxy (sync or aio). Writes go
through patch_item with one "set" operation per field, guarded by
etag + MatchConditions.IfNotModified, so Cosmos applies the whole batch
atomically or answers 412.
"""

from typing import Any, Dict, List, Mapping

from azure.core import MatchConditions
from azure.core.exceptions import HttpResponseError
from azure.cosmos.exceptions import CosmosResourceNotFoundError

from exceptions import ResourceNotFoundError, ValidationError, VersionConflictError
from interfaces.record_store import IAsyncRecordStore, IRecordStore, RecordKey, VersionedRecord
from util_logger import LoggerFactory, ComponentType

# Cosmos rejects patch requests carrying more operations than this
MAX_PATCH_OPERATIONS = 10

PRECONDITION_FAILED = 412


def build_patch_operations(fields: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Turn resolved field values into Cosmos patch operations."""
    if len(fields) > MAX_PATCH_OPERATIONS:
        raise ValidationError(
            f"Cosmos patch supports at most {MAX_PATCH_OPERATIONS} operations, got {len(fields)}"
        )
    return [{"op": "set", "path": f"/{name}", "value": value} for name, value in fields.items()]


def _to_record(key: RecordKey, item: Dict[str, Any]) -> VersionedRecord:
    return VersionedRecord(key=key, version=item["_etag"], fields=dict(item))


class CosmosRecordStore(IRecordStore):
    """IRecordStore over azure.cosmos.ContainerProxy."""

    def __init__(self, container):
        self.container = container
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "CosmosRecordStore")

    def read(self, key: RecordKey) -> VersionedRecord:
        try:
            item = self.container.read_item(item=key.record_id, partition_key=key.partition_key)
        except CosmosResourceNotFoundError as e:
            raise ResourceNotFoundError(
                f"Cosmos item {key.record_id} not found in partition {key.partition_key!r}"
            ) from e
        return _to_record(key, item)

    def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        operations = build_patch_operations(fields)
        try:
            item = self.container.patch_item(
                item=key.record_id,
                partition_key=key.partition_key,
                patch_operations=operations,
                etag=expected_version,
                match_condition=MatchConditions.IfNotModified,
            )
        except HttpResponseError as e:
            if e.status_code == PRECONDITION_FAILED:
                self.logger.debug(f"🔁 ETag moved on {key.record_id}, expected {expected_version}")
                raise VersionConflictError(key=key, expected_version=expected_version) from e
            raise
        return item["_etag"]


class AsyncCosmosRecordStore(IAsyncRecordStore):
    """IAsyncRecordStore over azure.cosmos.aio.ContainerProxy."""

    def __init__(self, container):
        self.container = container
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "AsyncCosmosRecordStore")

    async def read(self, key: RecordKey) -> VersionedRecord:
        try:
            item = await self.container.read_item(item=key.record_id, partition_key=key.partition_key)
        except CosmosResourceNotFoundError as e:
            raise ResourceNotFoundError(
                f"Cosmos item {key.record_id} not found in partition {key.partition_key!r}"
            ) from e
        return _to_record(key, item)

    async def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        operations = build_patch_operations(fields)
        try:
            item = await self.container.patch_item(
                item=key.record_id,
                partition_key=key.partition_key,
                patch_operations=operations,
                etag=expected_version,
                match_condition=MatchConditions.IfNotModified,
            )
        except HttpResponseError as e:
            if e.status_code == PRECONDITION_FAILED:
                self.logger.debug(f"🔁 ETag moved on {key.record_id}, expected {expected_version}")
                raise VersionConflictError(key=key, expected_version=expected_version) from e
            raise
        return item["_etag"]


__all__ = [
    'MAX_PATCH_OPERATIONS',
    'build_patch_operations',
    'CosmosRecordStore',
    'AsyncCosmosRecordStore',
]
