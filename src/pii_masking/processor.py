"""Masking processor — the document-level entry point.

Usage:

    processor = MaskingProcessor(config, recorder=LoggingAuditRecorder())

    outcome = processor.process(IngestDocument.from_dict(raw))
    if outcome.blocked:
        reject(outcome.rule_names)
    else:
        index(outcome.document)

Fields are visited in ``fields_to_check`` order.  In strict mode the first
field with PII blocks the document and later fields are not scanned.  No
field is ever masked in strict mode, so a blocked document is untouched.
"""

from __future__ import annotations
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .audit import AuditRecorder, LoggingAuditRecorder
from .config import Configuration, get_current_configuration
from .detector import Detector
from .document import Document
from .policy import Action, decide
from .types import Accepted, Blocked, Outcome

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


@dataclass
class MaskingProcessor:
    """Applies one Configuration snapshot to documents."""

    config: Configuration
    recorder: AuditRecorder = field(default_factory=LoggingAuditRecorder)
    detector: Detector = field(init=False)

    def __post_init__(self) -> None:
        self.detector = Detector(self.config.rules)
        for failure in self.detector.skipped:
            logger.debug("Rule %s unavailable: %s", failure.rule_name, failure.reason)

    @classmethod
    def from_current(cls, recorder: AuditRecorder | None = None) -> "MaskingProcessor":
        """Factory — snapshot the process-wide current configuration."""
        return cls(get_current_configuration(), recorder or LoggingAuditRecorder())

    def process(self, document: Document) -> Outcome:
        """Mask configured fields, or block the document in strict mode."""
        if not self.config.enabled:
            return Accepted(document)

        document_id = _meta_str(document, "_id")
        index_name = _meta_str(document, "_index")

        masked_fields: list[str] = []
        for path in self.config.fields_to_check:
            if not document.has_field(path):
                continue
            value = document.get_field(path)
            if not isinstance(value, str):
                continue

            result = self.detector.detect_and_mask(value)
            action = decide(result, self.config.strict_mode)

            if action is Action.BLOCK:
                rule_names = tuple(result.rule_names())
                logger.debug("Blocking document %s/%s on field %s", index_name, document_id, path)
                self._notify("record_blocked", index_name, document_id, rule_names)
                return Blocked(rule_names=rule_names, field_path=path)

            if action is Action.MASK:
                document.set_field(path, result.masked_text)
                masked_fields.append(path)
                self._notify("record_masked", index_name, document_id, path, result.detections)

        return Accepted(document, masked_fields)

    def process_many(self, documents: Iterable[Document]) -> list[Outcome]:
        return [self.process(doc) for doc in documents]

    def _notify(self, method: str, *args) -> None:
        """Call the recorder once.  Recorder errors never reach the caller."""
        try:
            getattr(self.recorder, method)(*args)
        except Exception:
            logger.exception("Audit recorder %s failed", method)


def _meta_str(document: Document, key: str) -> str:
    value = document.metadata(key)
    return UNKNOWN if value is None else str(value)
