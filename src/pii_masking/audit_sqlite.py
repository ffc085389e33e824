"""Persistent audit recorder backed by SQLite — survives process restarts.

Drop-in replacement for LoggingAuditRecorder when the trail has to be
queried later.

Usage:
    recorder = SqliteAuditRecorder("pii-audit-log", db_path="~/.pii-masking/audit.db")
    processor = MaskingProcessor(config, recorder)
    ...
    recorder.entries()     # everything recorded for this audit index
"""

from __future__ import annotations
import sqlite3
import threading
from pathlib import Path

from .audit import AuditEntry, blocked_entry, masked_entries


_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    audit_index TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    action TEXT NOT NULL,
    index_name TEXT NOT NULL,
    document_id TEXT NOT NULL,
    field_name TEXT NOT NULL,
    pii_type TEXT NOT NULL,
    original_value TEXT NOT NULL,
    masked_value TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_entries_doc
    ON audit_entries(audit_index, index_name, document_id);
"""

_COLUMNS = (
    "timestamp", "action", "index_name", "document_id",
    "field_name", "pii_type", "original_value", "masked_value",
)


class SqliteAuditRecorder:
    """Audit trail stored in one SQLite table, partitioned by audit index."""

    __slots__ = ("_audit_index", "_db", "_lock")

    def __init__(self, audit_index: str, *, db_path: str | Path = "audit.db") -> None:
        self._audit_index = audit_index
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)
        self._lock = threading.Lock()

    @property
    def audit_index(self) -> str:
        return self._audit_index

    def record_masked(self, index_name, document_id, field_path, detections) -> None:
        self._insert(masked_entries(index_name, document_id, field_path, detections))

    def record_blocked(self, index_name, document_id, rule_names) -> None:
        self._insert([blocked_entry(index_name, document_id, rule_names)])

    def _insert(self, entries: list[AuditEntry]) -> None:
        if not entries:
            return
        rows = [(self._audit_index, *(getattr(e, c) for c in _COLUMNS)) for e in entries]
        with self._lock:
            self._db.executemany(
                f"INSERT INTO audit_entries (audit_index, {', '.join(_COLUMNS)}) "
                f"VALUES (?, {', '.join('?' * len(_COLUMNS))})",
                rows,
            )
            self._db.commit()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def entries(self, *, document_id: str | None = None) -> list[AuditEntry]:
        """Entries for this audit index, oldest first."""
        sql = f"SELECT {', '.join(_COLUMNS)} FROM audit_entries WHERE audit_index = ?"
        params: tuple = (self._audit_index,)
        if document_id is not None:
            sql += " AND document_id = ?"
            params += (document_id,)
        rows = self._db.execute(sql + " ORDER BY id", params).fetchall()
        return [AuditEntry(*row) for row in rows]

    def count(self) -> int:
        row = self._db.execute(
            "SELECT COUNT(*) FROM audit_entries WHERE audit_index = ?",
            (self._audit_index,),
        ).fetchone()
        return row[0]

    def clear(self) -> None:
        with self._lock:
            self._db.execute("DELETE FROM audit_entries WHERE audit_index = ?", (self._audit_index,))
            self._db.commit()

    def list_indices(self) -> list[str]:
        """List all audit indices in the database."""
        rows = self._db.execute("SELECT DISTINCT audit_index FROM audit_entries").fetchall()
        return [r[0] for r in rows]

    def close(self) -> None:
        self._db.close()
