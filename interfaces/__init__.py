"""
Interfaces.

Abstract contracts the core services are written against.

Exports:
    IRecordStore / IAsyncRecordStore: Versioned read + conditional write
    RecordKey, VersionedRecord: Values passed through those contracts
"""

from .record_store import IAsyncRecordStore, IRecordStore, RecordKey, VersionedRecord

__all__ = ['IRecordStore', 'IAsyncRecordStore', 'RecordKey', 'VersionedRecord']
