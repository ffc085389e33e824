"""Mask-or-block decision for a single scanned field."""

from __future__ import annotations
from enum import Enum

from .types import MaskingResult


class Action(str, Enum):
    PASS = "pass"      # no PII, leave the field alone
    MASK = "mask"      # write masked_text back, audit each detection
    BLOCK = "block"    # reject the whole document


def decide(result: MaskingResult, strict_mode: bool) -> Action:
    if not result.has_pii():
        return Action.PASS
    if strict_mode:
        return Action.BLOCK
    return Action.MASK
