"""
Record Backends
================

The document collaborator the versioned store reads from and writes to.

The store only needs equality filters, descending order and a limit, so any
document API can sit behind the RecordBackend protocol:

- SQLiteRecordBackend: local append-only document table (devnet, tests)
- LedgerRecordBackend: signed state transitions (ara_vault.ledger.backend)

Writes carry an expected-version precondition and are rejected atomically
with VersionConflict when it no longer holds.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from ..errors import VersionConflict

logger = logging.getLogger(__name__)


# =============================================================================
# Query
# =============================================================================

@dataclass
class RecordQuery:
    """Filtered document query: where clauses, ordering, limit."""
    where: List[List[Any]] = field(default_factory=list)  # [[field, op, value]]
    order_by: List[List[str]] = field(default_factory=list)  # [[field, "asc"|"desc"]]
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "where": [list(c) for c in self.where],
            "orderBy": [list(o) for o in self.order_by],
        }
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RecordQuery:
        return cls(
            where=[list(c) for c in data.get("where", [])],
            order_by=[list(o) for o in data.get("orderBy", [])],
            limit=data.get("limit"),
        )


@dataclass(frozen=True)
class WriteReceipt:
    """What a backend reports after accepting a write."""
    document_id: str
    transition_hash: Optional[str] = None


class RecordBackend(Protocol):
    """Generic filtered document API."""

    async def query(self, document_type: str, query: RecordQuery) -> List[Dict[str, Any]]:
        ...

    async def create(self, document_type: str, document: Dict[str, Any]) -> WriteReceipt:
        ...

    async def replace(
        self,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
    ) -> WriteReceipt:
        ...


def document_id(document_type: str, token_id: str, version: int) -> str:
    """Deterministic id of one document version."""
    material = f"{document_type}|{token_id}|{version}".encode("utf-8")
    return hashlib.sha256(material).hexdigest()


# =============================================================================
# SQLite Backend
# =============================================================================

SCHEMA = """
-- Encrypted memory documents, one row per version
CREATE TABLE IF NOT EXISTS documents (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     TEXT NOT NULL UNIQUE,
    document_type   TEXT NOT NULL,
    token_id        TEXT NOT NULL,
    agent_wallet    TEXT NOT NULL,
    version         INTEGER NOT NULL,
    timestamp       INTEGER NOT NULL,
    body            TEXT NOT NULL,  -- JSON document (ciphertext stays base64)
    size_bytes      INTEGER,
    UNIQUE (document_type, token_id, version)
);

CREATE INDEX IF NOT EXISTS idx_documents_token ON documents(document_type, token_id, version DESC);
CREATE INDEX IF NOT EXISTS idx_documents_wallet ON documents(document_type, agent_wallet);

-- Identity that created each token chain; only it may append versions
CREATE TABLE IF NOT EXISTS token_owners (
    document_type   TEXT NOT NULL,
    token_id        TEXT NOT NULL,
    identity_id     TEXT NOT NULL,
    PRIMARY KEY (document_type, token_id)
);
"""

# document field -> column
QUERY_FIELDS = {
    "tokenId": "token_id",
    "agentWallet": "agent_wallet",
    "version": "version",
    "timestamp": "timestamp",
}


class SQLiteRecordBackend:
    """
    Append-only document store on SQLite.

    The server stores ciphertext it CANNOT decrypt; only token id, owner
    address, version and timestamp are readable for indexing.

    sqlite3 calls block, so the async methods run them in the default
    executor. One connection is shared by every thread and guarded by a lock.
    """

    def __init__(self, db_path: Union[Path, str] = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self._lock = threading.RLock()
        logger.info(f"SQLiteRecordBackend initialized at {self.db_path}")

    # =========================================================================
    # Queries
    # =========================================================================

    async def _run(self, func, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._locked, func, *args)

    def _locked(self, func, *args: Any) -> Any:
        with self._lock:
            return func(*args)

    async def query(self, document_type: str, query: RecordQuery) -> List[Dict[str, Any]]:
        sql, params = self._build_select(document_type, query)
        rows = await self._run(lambda: self.conn.execute(sql, params).fetchall())
        return [json.loads(row["body"]) for row in rows]

    def _build_select(self, document_type: str, query: RecordQuery):
        clauses = ["document_type = ?"]
        params: List[Any] = [document_type]

        for condition in query.where:
            if len(condition) != 3:
                raise ValueError(f"Malformed where clause: {condition!r}")
            name, op, value = condition
            if name not in QUERY_FIELDS:
                raise ValueError(f"Unsupported query field: {name}")
            if op != "==":
                raise ValueError(f"Unsupported query operator: {op}")
            if name == "agentWallet" and isinstance(value, str):
                value = value.lower()
            clauses.append(f"{QUERY_FIELDS[name]} = ?")
            params.append(value)

        order = []
        for name, direction in query.order_by:
            if name not in QUERY_FIELDS:
                raise ValueError(f"Unsupported order field: {name}")
            if direction.lower() not in ("asc", "desc"):
                raise ValueError(f"Unsupported order direction: {direction}")
            order.append(f"{QUERY_FIELDS[name]} {direction.upper()}")

        sql = f"SELECT body FROM documents WHERE {' AND '.join(clauses)}"
        sql += f" ORDER BY {', '.join(order)}" if order else " ORDER BY id ASC"
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(int(query.limit))
        return sql, params

    def latest_version(self, document_type: str, token_id: str) -> int:
        with self._lock:
            row = self.conn.execute(
                """
                SELECT MAX(version) AS version FROM documents
                WHERE document_type = ? AND token_id = ?
                """,
                (document_type, token_id),
            ).fetchone()
        return row["version"] or 0

    def token_owner(self, document_type: str, token_id: str) -> Optional[str]:
        """Identity that created the chain for token_id, if any."""
        with self._lock:
            row = self.conn.execute(
                "SELECT identity_id FROM token_owners WHERE document_type = ? AND token_id = ?",
                (document_type, token_id),
            ).fetchone()
        return row["identity_id"] if row else None

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        document_type: str,
        document: Dict[str, Any],
        owner_id: Optional[str] = None,
    ) -> WriteReceipt:
        return await self._run(self._write, document_type, document, 0, owner_id)

    async def replace(
        self,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
        owner_id: Optional[str] = None,
    ) -> WriteReceipt:
        if expected_version < 1:
            raise ValueError("replace requires an existing version")
        return await self._run(self._write, document_type, document, expected_version, owner_id)

    def _write(
        self,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
        owner_id: Optional[str] = None,
    ) -> WriteReceipt:
        """
        Append one version inside a single transaction.

        With owner_id set, the first write claims the token chain for that
        identity and later writes by any other identity raise PermissionError.
        """
        token_id = str(document["tokenId"])
        version = int(document["version"])
        if version != expected_version + 1:
            raise ValueError(
                f"document version {version} does not follow expected version {expected_version}"
            )

        doc_id = document_id(document_type, token_id, version)

        self.conn.execute("BEGIN IMMEDIATE")
        try:
            if owner_id is not None:
                owner = self.token_owner(document_type, token_id)
                if owner is not None and owner != owner_id:
                    raise PermissionError(f"Token {token_id} is owned by another identity")

            actual = self.latest_version(document_type, token_id)
            if actual != expected_version:
                raise VersionConflict(
                    f"Token {token_id}: expected version {expected_version}, found {actual}",
                    resource_id=token_id,
                    expected_version=expected_version,
                    actual_version=actual,
                )

            self.conn.execute(
                """
                INSERT INTO documents
                    (document_id, document_type, token_id, agent_wallet,
                     version, timestamp, body, size_bytes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    doc_id,
                    document_type,
                    token_id,
                    str(document["agentWallet"]).lower(),
                    version,
                    int(document["timestamp"]),
                    json.dumps(document, sort_keys=True),
                    len(document.get("encryptedMemory", "")),
                ),
            )
            if owner_id is not None:
                self.conn.execute(
                    "INSERT OR IGNORE INTO token_owners (document_type, token_id, identity_id) VALUES (?, ?, ?)",
                    (document_type, token_id, owner_id),
                )
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        self.conn.execute("COMMIT")

        logger.debug(f"Stored {document_type} token={token_id} version={version}")
        return WriteReceipt(document_id=doc_id)

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self, agent_wallet: Optional[str] = None) -> Dict[str, Any]:
        """Get storage stats."""
        with self._lock:
            if agent_wallet:
                row = self.conn.execute(
                    """
                    SELECT COUNT(*) as count, SUM(size_bytes) as total_bytes
                    FROM documents WHERE agent_wallet = ?
                    """,
                    (agent_wallet.lower(),),
                ).fetchone()
            else:
                row = self.conn.execute(
                    "SELECT COUNT(*) as count, SUM(size_bytes) as total_bytes FROM documents"
                ).fetchone()

        return {
            "document_count": row["count"],
            "total_bytes": row["total_bytes"] or 0,
        }

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()
