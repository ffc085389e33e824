"""Detector — the scan-and-mask engine.

Usage:
    from pii_masking import Detector, DEFAULT_RULES

    detector = Detector(DEFAULT_RULES)     # reusable, thread-safe after init

    result = detector.detect_and_mask("Contact john.doe@example.com")
    print(result.masked_text)               # "Contact ****@example.com"
    print(result.detections[0].type)        # "email"

Rules are applied one after another in mapping order.  Each rule scans
the text *as left by the previous rule*, so a mask string can be matched
(or a span destroyed) by a later rule.  That ordering is part of the
contract: put rules whose masks look like other PII last.
"""

from __future__ import annotations
import re
from collections.abc import Mapping
from types import MappingProxyType

from .patterns import compile_rules
from .types import CompileFailure, Detection, MaskingResult, MaskingRule


class Detector:
    """Compiled rule set with scan-and-mask and presence checks."""

    __slots__ = ("_rules", "_patterns", "_skipped")

    def __init__(self, rules: Mapping[str, MaskingRule]) -> None:
        self._rules = MappingProxyType(dict(rules))
        patterns, skipped = compile_rules(self._rules)
        self._patterns = MappingProxyType(patterns)
        self._skipped = tuple(skipped)

    @property
    def rules(self) -> Mapping[str, MaskingRule]:
        return self._rules

    @property
    def patterns(self) -> Mapping[str, re.Pattern]:
        """Compiled matchers, in application order."""
        return self._patterns

    @property
    def skipped(self) -> tuple[CompileFailure, ...]:
        """Rules left out because their pattern failed to compile."""
        return self._skipped

    def detect_and_mask(self, text: str | None) -> MaskingResult:
        """Mask every rule's matches in ``text`` and record each one.

        Empty or ``None`` input comes back unchanged with no detections.
        """
        if not text:
            return MaskingResult(text, ())

        masked = text
        detections: list[Detection] = []
        for name, pattern in self._patterns.items():
            mask = self._rules[name].mask
            parts: list[str] = []
            pos = 0
            for m in pattern.finditer(masked):
                detections.append(Detection(type=name, original_value=m.group(), masked_value=mask))
                parts.append(masked[pos:m.start()])
                parts.append(mask)    # literal, never a group template
                pos = m.end()
            if parts:
                parts.append(masked[pos:])
                masked = "".join(parts)

        return MaskingResult(masked, tuple(detections))

    def contains_pii(self, text: str | None) -> bool:
        """True if any rule matches ``text``.  Stops at the first hit."""
        if not text:
            return False
        return any(pattern.search(text) for pattern in self._patterns.values())

    def __repr__(self) -> str:
        return f"Detector(rules={list(self._patterns)!r}, skipped={[f.rule_name for f in self._skipped]!r})"
