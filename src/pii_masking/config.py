"""YAML/dict config loader for pii-masking.

Supports loading from a YAML file or a plain dict (for embedding in a
larger config, or a JSON body on the sidecar's ``PUT /config``).

Example YAML:

    pii_masking:
      enabled: true
      audit_index: pii-audit-log
      strict_mode: false
      fields_to_check:
        - message
        - user.email
      masking:
        email:
          pattern: '[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\\.[a-zA-Z]{2,}'
          mask: '****@example.com'
        employee_id:
          pattern: 'EMP-\\d{6}'
          mask: 'EMP-******'

Missing keys fall back to: enabled, audit index ``pii-audit-log``, no
rules, ``message`` as the only field, strict mode off.

There is one process-wide "current configuration" slot.  Replacing it
swaps the whole immutable Configuration; nothing ever edits one in place,
so a reader sees either the old snapshot or the new one.
"""

from __future__ import annotations
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .patterns import DEFAULT_FIELDS, DEFAULT_RULES
from .types import MaskingRule

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_INDEX = "pii-audit-log"


class ConfigError(ValueError):
    """Raised for a structurally malformed configuration document."""


@dataclass(frozen=True)
class Configuration:
    """Immutable masking configuration snapshot."""
    enabled: bool = True
    audit_index: str = DEFAULT_AUDIT_INDEX
    rules: Mapping[str, MaskingRule] = field(default_factory=dict)
    fields_to_check: tuple[str, ...] = ("message",)
    strict_mode: bool = False

    def __post_init__(self) -> None:
        # Freeze the containers too; order is preserved.
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))
        object.__setattr__(self, "fields_to_check", tuple(self.fields_to_check))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return (
            self.enabled == other.enabled
            and self.audit_index == other.audit_index
            and dict(self.rules) == dict(other.rules)
            and self.fields_to_check == other.fields_to_check
            and self.strict_mode == other.strict_mode
        )

    def __hash__(self) -> int:
        return hash((
            self.enabled, self.audit_index, tuple(self.rules.items()),
            self.fields_to_check, self.strict_mode,
        ))

    def replace(self, **changes: Any) -> "Configuration":
        """Return a new Configuration with ``changes`` applied."""
        values = {
            "enabled": self.enabled,
            "audit_index": self.audit_index,
            "rules": self.rules,
            "fields_to_check": self.fields_to_check,
            "strict_mode": self.strict_mode,
        }
        values.update(changes)
        return Configuration(**values)


def default_configuration() -> Configuration:
    """The shipped starting point: email, ssn, credit_card, phone."""
    return Configuration(
        enabled=True,
        audit_index=DEFAULT_AUDIT_INDEX,
        rules=DEFAULT_RULES,
        fields_to_check=DEFAULT_FIELDS,
        strict_mode=False,
    )


# ── Parsing ─────────────────────────────────────────────────────────

def _parse_rule(name: str, data: Any) -> MaskingRule:
    if not isinstance(data, Mapping):
        raise ConfigError(f"masking rule {name!r} must be a mapping with 'pattern' and 'mask'")
    for key in ("pattern", "mask"):
        if key not in data:
            raise ConfigError(f"masking rule {name!r} is missing {key!r}")
        if not isinstance(data[key], str):
            raise ConfigError(f"masking rule {name!r}: {key!r} must be a string")
    return MaskingRule(pattern=data["pattern"], mask=data["mask"])


def _parse_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{key!r} must be a boolean, got {value!r}")
    return value


def load_config(data: Mapping[str, Any]) -> Configuration:
    """Build a Configuration from a dict (from YAML, JSON or inline)."""
    # Support nested under "pii_masking" key or flat
    if "pii_masking" in data:
        data = data["pii_masking"]
    if not isinstance(data, Mapping):
        raise ConfigError("configuration must be a mapping")

    masking = data.get("masking") or {}
    if not isinstance(masking, Mapping):
        raise ConfigError("'masking' must be a mapping of rule name to rule")
    rules = {str(name): _parse_rule(str(name), rule) for name, rule in masking.items()}

    fields = data.get("fields_to_check")
    if fields is None:
        fields = ["message"]
    if isinstance(fields, str) or not isinstance(fields, Iterable):
        raise ConfigError("'fields_to_check' must be a list of field paths")
    fields = [str(f) for f in fields]

    audit_index = data.get("audit_index", DEFAULT_AUDIT_INDEX)
    if not isinstance(audit_index, str):
        raise ConfigError("'audit_index' must be a string")

    return Configuration(
        enabled=_parse_bool("enabled", data.get("enabled", True)),
        audit_index=audit_index,
        rules=rules,
        fields_to_check=tuple(fields),
        strict_mode=_parse_bool("strict_mode", data.get("strict_mode", False)),
    )


def load_from_yaml(path: str | Path) -> Configuration:
    """Load config from a YAML file."""
    import yaml
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    config = load_config(data)
    logger.info("Loaded %d masking rules from %s", len(config.rules), path)
    return config


def dump_config(config: Configuration) -> dict[str, Any]:
    """Inverse of load_config — a JSON/YAML-serializable dict."""
    return {
        "enabled": config.enabled,
        "audit_index": config.audit_index,
        "masking": {
            name: {"pattern": rule.pattern, "mask": rule.mask}
            for name, rule in config.rules.items()
        },
        "fields_to_check": list(config.fields_to_check),
        "strict_mode": config.strict_mode,
    }


# ── Current-configuration slot ──────────────────────────────────────

class ConfigurationHolder:
    """A swap-only slot holding one Configuration snapshot."""

    __slots__ = ("_config", "_lock")

    def __init__(self, config: Configuration) -> None:
        self._config = config
        self._lock = threading.Lock()

    def get(self) -> Configuration:
        return self._config

    def replace(self, config: Configuration) -> Configuration:
        """Swap in ``config``; returns the snapshot it replaced."""
        if not isinstance(config, Configuration):
            raise TypeError(f"expected Configuration, got {type(config).__name__}")
        with self._lock:
            previous, self._config = self._config, config
        logger.info(
            "Replaced masking configuration: %d rules, strict_mode=%s, enabled=%s",
            len(config.rules), config.strict_mode, config.enabled,
        )
        return previous


_current = ConfigurationHolder(default_configuration())


def get_current_configuration() -> Configuration:
    return _current.get()


def replace_current_configuration(config: Configuration) -> Configuration:
    return _current.replace(config)
