"""
Ara Vault Storage
==================

Versioned storage for encrypted memory records.

The backend stores encrypted blobs it CANNOT decrypt.
Only token id, owner address, version and timestamp are readable for indexing.
"""

from .records import EncryptedRecord
from .backend import RecordBackend, RecordQuery, SQLiteRecordBackend, WriteReceipt, document_id
from .versioned_store import StoredRecord, VersionedRecordStore
from .uri import StorageScheme, StorageURI, format_storage_uri, parse_storage_uri

__all__ = [
    "EncryptedRecord",
    "RecordBackend",
    "RecordQuery",
    "SQLiteRecordBackend",
    "WriteReceipt",
    "document_id",
    "StoredRecord",
    "VersionedRecordStore",
    "StorageScheme",
    "StorageURI",
    "format_storage_uri",
    "parse_storage_uri",
]
