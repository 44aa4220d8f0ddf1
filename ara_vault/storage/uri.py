"""
Storage URIs
=============

Opaque locators of the form ``scheme://id`` telling upstream code where an
encrypted payload lives, without pulling in the backend's client library.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import UnknownSchemeError

SEPARATOR = "://"


class StorageScheme(Enum):
    """Supported storage backends."""
    DASH = "dash"  # this vault's ledger documents
    IPFS = "ipfs"
    ARWEAVE = "ar"


@dataclass(frozen=True)
class StorageURI:
    scheme: StorageScheme
    id: str

    def __str__(self) -> str:
        return format_storage_uri(self.scheme, self.id)


def parse_storage_uri(uri: str) -> StorageURI:
    """Split a storage URI into scheme and id."""
    if not isinstance(uri, str) or SEPARATOR not in uri:
        raise UnknownSchemeError(f"Malformed storage URI: {uri!r}")

    prefix, _, ident = uri.partition(SEPARATOR)
    try:
        scheme = StorageScheme(prefix)
    except ValueError:
        raise UnknownSchemeError(f"Unknown storage URI scheme: {uri}") from None

    if not ident:
        raise UnknownSchemeError(f"Storage URI has no id: {uri}")

    return StorageURI(scheme=scheme, id=ident)


def format_storage_uri(scheme: StorageScheme, ident: str) -> str:
    """Canonical ``scheme://id`` form."""
    if not isinstance(scheme, StorageScheme):
        try:
            scheme = StorageScheme(scheme)
        except ValueError:
            raise UnknownSchemeError(f"Unknown storage URI scheme: {scheme}") from None
    if not ident:
        raise UnknownSchemeError("Storage URI id must not be empty")
    return f"{scheme.value}{SEPARATOR}{ident}"
