"""PII Masking — pattern-based PII masking and auditing for structured documents."""

from .detector import Detector
from .patterns import DEFAULT_RULES, compile_rules
from .policy import Action, decide
from .processor import MaskingProcessor
from .document import Document, IngestDocument
from .audit import AuditEntry, AuditRecorder, LoggingAuditRecorder, MemoryAuditRecorder
from .audit_sqlite import SqliteAuditRecorder
from .config import (
    Configuration, ConfigurationHolder, ConfigError,
    default_configuration, load_config, load_from_yaml, dump_config,
    get_current_configuration, replace_current_configuration,
)
from .types import (
    MaskingRule, CompileFailure, Detection, MaskingResult,
    Accepted, Blocked, Outcome,
)

__all__ = [
    "Detector", "DEFAULT_RULES", "compile_rules",
    "Action", "decide",
    "MaskingProcessor",
    "Document", "IngestDocument",
    "AuditEntry", "AuditRecorder", "LoggingAuditRecorder", "MemoryAuditRecorder",
    "SqliteAuditRecorder",
    "Configuration", "ConfigurationHolder", "ConfigError",
    "default_configuration", "load_config", "load_from_yaml", "dump_config",
    "get_current_configuration", "replace_current_configuration",
    "MaskingRule", "CompileFailure", "Detection", "MaskingResult",
    "Accepted", "Blocked", "Outcome",
]
__version__ = "0.1.0"
