# ============================================================================
# CLAUDE CONTEXT - INTERFACE
# ============================================================================
# PURPOSE: Versioned record access used by the optimistic-concurrency patch
# EXPORTS: RecordKey, VersionedRecord, IRecordStore, IAsyncRecordStore
# INTERFACES: ABC (Abstract Base Class) defining read / conditional_write
# DEPENDENCIES: abc, dataclasses, typing
# SCOPE: Storage abstraction for Cosmos DB and Table Storage
# PATTERNS: Interface segregation, dependency inversion
# ENTRY_POINTS: Implemented by infrastructure.cosmos_store and infrastructure.table_store
# ============================================================================

"""
Record Store Interface

A record store knows two things: how to read a record together with its
version token (the service ETag), and how to write new field values only
if that token is still current. Everything else about the backing service
stays inside the implementation.

Version tokens are opaque. Callers only pass them back to the store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, NamedTuple


class RecordKey(NamedTuple):
    """Partition key + id (Cosmos) or PartitionKey + RowKey (Table Storage)."""
    partition_key: Any
    record_id: str


@dataclass(frozen=True)
class VersionedRecord:
    """A record as read from the store, with the version token it was read at."""
    key: RecordKey
    version: str
    fields: Dict[str, Any] = field(default_factory=dict)


class IRecordStore(ABC):
    """
    Interface for versioned record access.

    Implementations must translate the service's precondition-failed
    response (HTTP 412) into exceptions.VersionConflictError and let
    every other failure propagate as raised by the SDK.
    """

    @abstractmethod
    def read(self, key: RecordKey) -> VersionedRecord:
        """
        Read the current record and its version token.

        Raises:
            ResourceNotFoundError: The record does not exist
        """
        pass

    @abstractmethod
    def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        """
        Write fields only if the stored version still equals expected_version.

        All fields are applied in one request: either all of them are
        committed or none is.

        Returns:
            The new version token

        Raises:
            VersionConflictError: expected_version is stale
        """
        pass


class IAsyncRecordStore(ABC):
    """Async counterpart of IRecordStore, same contract."""

    @abstractmethod
    async def read(self, key: RecordKey) -> VersionedRecord:
        pass

    @abstractmethod
    async def conditional_write(self, key: RecordKey, fields: Mapping[str, Any], expected_version: str) -> str:
        pass
