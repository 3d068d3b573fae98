# ============================================================================
# CLAUDE CONTEXT - TABLE RECORD STORE
# ============================================================================
# STATUS: Infrastructure - IRecordStore over an Azure Table
# PURPOSE: Read entity + ETag, MERGE update guarded by the ETag
# EXPORTS: TableRecordStore, AsyncTableRecordStore
# DEPENDENCIES: azure-data-tables (sync + aio), azure-core
# PATTERNS: Adapter, error translation (412 -> VersionConflictError)
# ENTRY_POINTS: TableStorageRepository.update_record
# ============================================================================

"""
Azure Table Storage record stores.

The record key maps to PartitionKey / RowKey. Writes are MERGE updates so
properties outside the batch are left alone. With
use_optimistic_concurrency=False the write is sent unconditionally
(ETag "*") and can never conflict.
"""

from typing import Any, Dict, Mapping

from azure.core import MatchConditions
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError as AzureResourceNotFoundError
from azure.data.tables import UpdateMode

from exceptions import ResourceNotFoundError, VersionConflictError
from interfaces.record_store import IAsyncRecordStore, IRecordStore, RecordKey, VersionedRecord
from util_logger import LoggerFactory, ComponentType

PRECONDITION_FAILED = 412


def _to_record(key: RecordKey, entity) -> VersionedRecord:
    return VersionedRecord(key=key, version=entity.metadata["etag"], fields=dict(entity))


def _to_entity(key: RecordKey, fields: Mapping[str, Any]) -> Dict[str, Any]:
    entity = dict(fields)
    entity["PartitionKey"] = key.partition_key
    entity["RowKey"] = key.record_id
    return entity


class TableRecordStore(IRecordStore):
    """IRecordStore over azure.data.tables.TableClient."""

    def __init__(self, table_client, use_optimistic_concurrency: bool = True):
        self.table_client = table_client
        self.use_optimistic_concurrency = use_optimistic_concurrency
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "TableRecordStore")

    def read(self, key: RecordKey) -> VersionedRecord:
        try:
            entity = self.table_client.get_entity(partition_key=key.partition_key, row_key=key.record_id)
        except AzureResourceNotFoundError as e:
            raise ResourceNotFoundError(
                f"Entity {key.partition_key}/{key.record_id} not found in {self.table_client.table_name}"
            ) from e
        return _to_record(key, entity)

    def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        if self.use_optimistic_concurrency:
            condition = {"etag": expected_version, "match_condition": MatchConditions.IfNotModified}
        else:
            condition = {"match_condition": MatchConditions.Unconditionally}
        try:
            metadata = self.table_client.update_entity(
                entity=_to_entity(key, fields),
                mode=UpdateMode.MERGE,
                **condition,
            )
        except HttpResponseError as e:
            if e.status_code == PRECONDITION_FAILED:
                self.logger.debug(f"🔁 ETag moved on {key.partition_key}/{key.record_id}")
                raise VersionConflictError(key=key, expected_version=expected_version) from e
            raise
        return metadata["etag"]


class AsyncTableRecordStore(IAsyncRecordStore):
    """IAsyncRecordStore over azure.data.tables.aio.TableClient."""

    def __init__(self, table_client, use_optimistic_concurrency: bool = True):
        self.table_client = table_client
        self.use_optimistic_concurrency = use_optimistic_concurrency
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "AsyncTableRecordStore")

    async def read(self, key: RecordKey) -> VersionedRecord:
        try:
            entity = await self.table_client.get_entity(partition_key=key.partition_key, row_key=key.record_id)
        except AzureResourceNotFoundError as e:
            raise ResourceNotFoundError(
                f"Entity {key.partition_key}/{key.record_id} not found in {self.table_client.table_name}"
            ) from e
        return _to_record(key, entity)

    async def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        if self.use_optimistic_concurrency:
            condition = {"etag": expected_version, "match_condition": MatchConditions.IfNotModified}
        else:
            condition = {"match_condition": MatchConditions.Unconditionally}
        try:
            metadata = await self.table_client.update_entity(
                entity=_to_entity(key, fields),
                mode=UpdateMode.MERGE,
                **condition,
            )
        except HttpResponseError as e:
            if e.status_code == PRECONDITION_FAILED:
                self.logger.debug(f"🔁 ETag moved on {key.partition_key}/{key.record_id}")
                raise VersionConflictError(key=key, expected_version=expected_version) from e
            raise
        return metadata["etag"]


__all__ = [
    'TableRecordStore',
    'AsyncTableRecordStore',
]
