"""Audit recorders — where mask and block events go.

A recorder gets two kinds of event:

    record_masked(index, doc_id, field, detections)   one entry per detection
    record_blocked(index, doc_id, rule_names)         one entry per document

Recorders are fire-and-forget.  The processor guards every call, so a
failing recorder is logged and ignored rather than breaking masking.
"""

from __future__ import annotations
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from .types import Detection

audit_logger = logging.getLogger("pii_masking.audit")

ACTION_MASKED = "masked"
ACTION_BLOCKED = "blocked"

_LINE_FMT = (
    "[{timestamp}] PII {action} - Index: {index_name}, DocId: {document_id}, "
    "Field: {field_name}, Type: {pii_type}, Original: {original_value}, "
    "Masked: {masked_value}"
)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """One line of the audit trail."""
    timestamp: str         # ISO-8601, UTC
    action: str            # "masked" | "blocked"
    index_name: str
    document_id: str
    field_name: str
    pii_type: str
    original_value: str
    masked_value: str

    def format(self) -> str:
        return _LINE_FMT.format(**asdict(self))

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def masked_entries(
    index_name: str,
    document_id: str,
    field_path: str,
    detections: Sequence[Detection],
) -> list[AuditEntry]:
    """Shape a mask event into entries, one per detection."""
    ts = _now()
    return [
        AuditEntry(
            timestamp=ts,
            action=ACTION_MASKED,
            index_name=index_name,
            document_id=document_id,
            field_name=field_path,
            pii_type=d.type,
            original_value=d.original_value,
            masked_value=d.masked_value,
        )
        for d in detections
    ]


def blocked_entry(index_name: str, document_id: str, rule_names: Sequence[str]) -> AuditEntry:
    """Shape a block event into a single document-level entry."""
    return AuditEntry(
        timestamp=_now(),
        action=ACTION_BLOCKED,
        index_name=index_name,
        document_id=document_id,
        field_name="document",
        pii_type=",".join(rule_names),
        original_value="document_blocked",
        masked_value="N/A",
    )


@runtime_checkable
class AuditRecorder(Protocol):
    def record_masked(
        self,
        index_name: str,
        document_id: str,
        field_path: str,
        detections: Sequence[Detection],
    ) -> None: ...

    def record_blocked(
        self,
        index_name: str,
        document_id: str,
        rule_names: Sequence[str],
    ) -> None: ...


class LoggingAuditRecorder:
    """Writes each entry as a formatted line to the ``pii_masking.audit`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or audit_logger

    def record_masked(self, index_name, document_id, field_path, detections) -> None:
        for entry in masked_entries(index_name, document_id, field_path, detections):
            self._logger.info(entry.format())

    def record_blocked(self, index_name, document_id, rule_names) -> None:
        self._logger.info(blocked_entry(index_name, document_id, rule_names).format())


class MemoryAuditRecorder:
    """Keeps entries in a list.  Handy for tests and embedding."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record_masked(self, index_name, document_id, field_path, detections) -> None:
        self.entries.extend(masked_entries(index_name, document_id, field_path, detections))

    def record_blocked(self, index_name, document_id, rule_names) -> None:
        self.entries.append(blocked_entry(index_name, document_id, rule_names))

    def clear(self) -> None:
        self.entries.clear()
