"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class MaskingRule:
    """A named PII type's pattern and the literal mask that replaces it."""
    pattern: str           # Python ``re`` syntax
    mask: str


@dataclass(frozen=True, slots=True)
class CompileFailure:
    """A rule that was skipped because its pattern did not compile."""
    rule_name: str
    pattern: str
    reason: str


@dataclass(frozen=True, slots=True)
class Detection:
    """A single matched occurrence, before and after masking."""
    type: str              # rule name, e.g. "email"
    original_value: str
    masked_value: str


@dataclass(frozen=True, slots=True)
class MaskingResult:
    """Result of scanning one text value."""
    masked_text: str | None
    detections: tuple[Detection, ...] = ()

    def has_pii(self) -> bool:
        return bool(self.detections)

    def rule_names(self) -> list[str]:
        """Distinct rule names, in the order they were first detected."""
        return list(dict.fromkeys(d.type for d in self.detections))

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.masked_text,
            "detections": [
                {"type": d.type, "original": d.original_value, "masked": d.masked_value}
                for d in self.detections
            ],
        }


# ── Document-level outcomes ─────────────────────────────────────────

@dataclass(slots=True)
class Accepted:
    """The document passed; masked fields (if any) were written to it."""
    document: Any
    masked_fields: list[str] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        doc = self.document.to_dict() if hasattr(self.document, "to_dict") else self.document
        return {"blocked": False, "document": doc, "masked_fields": list(self.masked_fields)}


@dataclass(frozen=True, slots=True)
class Blocked:
    """Strict mode rejected the document.  Nothing was written to it."""
    rule_names: tuple[str, ...]
    field_path: str

    @property
    def blocked(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"blocked": True, "rule_names": list(self.rule_names), "field": self.field_path}


Outcome = Accepted | Blocked
