"""Default rule set and the pattern compiler.

Rules are plain data (name → pattern + mask).  Compilation happens once,
when a Detector is built, and a bad pattern only costs that one rule:
it is logged, recorded as a CompileFailure, and left out.
"""

from __future__ import annotations
import logging
import re
from collections.abc import Mapping

from .types import CompileFailure, MaskingRule

logger = logging.getLogger(__name__)

# Applied in this order; later rules see the output of earlier ones.
DEFAULT_RULES: dict[str, MaskingRule] = {
    # Email: loose RFC shape
    "email": MaskingRule(
        r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
        "****@example.com",
    ),

    # SSN (US): DDD-DD-DDDD
    "ssn": MaskingRule(
        r"\b\d{3}-\d{2}-\d{4}\b",
        "***-**-****",
    ),

    # Credit card: 13 to 16 digits, optional space/dash separators
    "credit_card": MaskingRule(
        r"\b(?:\d[ -]*?){13,16}\b",
        "****-****-****-****",
    ),

    # Phone (NANP): DDD-DDD-DDDD
    "phone": MaskingRule(
        r"\b\d{3}-\d{3}-\d{4}\b",
        "***-***-****",
    ),
}

DEFAULT_FIELDS: tuple[str, ...] = ("message", "user.email", "details")


def compile_rules(
    rules: Mapping[str, MaskingRule],
) -> tuple[dict[str, re.Pattern], list[CompileFailure]]:
    """Compile every rule's pattern, keeping mapping order.

    Returns (compiled, skipped).  ``compiled`` holds only the rules that
    compiled; ``skipped`` has one CompileFailure per rule that didn't.
    Never raises for bad pattern text.  Patterns are compiled with
    re.ASCII, so digit, word and boundary classes only match ASCII.
    """
    compiled: dict[str, re.Pattern] = {}
    skipped: list[CompileFailure] = []
    for name, rule in rules.items():
        try:
            compiled[name] = re.compile(rule.pattern, re.ASCII)
        except re.error as e:
            logger.warning("Invalid regex pattern for %s: %s", name, e)
            skipped.append(CompileFailure(rule_name=name, pattern=rule.pattern, reason=str(e)))
    return compiled, skipped
