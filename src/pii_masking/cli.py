"""CLI interface for pii-masking.

Usage:
    # Mask documents (stdin: JSON object or array, stdout: JSON outcomes)
    echo '{"_id":"1","message":"mail john@x.com"}' | \
        python -m pii_masking.cli mask

    # Mask plain text (stdin: text, stdout: masked text + detections)
    echo 'SSN: 123-45-6789' | python -m pii_masking.cli mask-text

    # Presence check only; exit status 1 when PII is found
    echo 'nothing here' | python -m pii_masking.cli check

    # Show the effective configuration / dump the audit trail
    python -m pii_masking.cli --config rules.yaml config
    python -m pii_masking.cli --audit-db audit.db audit

Exit status 2 from ``mask`` means at least one document was blocked; 64 means
unusable input (not a document, or text over ``--max-length``).
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys

from .audit import LoggingAuditRecorder
from .audit_sqlite import SqliteAuditRecorder
from .config import Configuration, default_configuration, dump_config, load_from_yaml
from .detector import Detector
from .document import IngestDocument
from .processor import MaskingProcessor

EXIT_PII_FOUND = 1
EXIT_BLOCKED = 2
EXIT_USAGE = 64

DEFAULT_CONFIG = os.environ.get("PII_MASKING_CONFIG", "")
DEFAULT_AUDIT_DB = os.environ.get("PII_MASKING_AUDIT_DB", "")
DEFAULT_LOG_LEVEL = os.environ.get("PII_MASKING_LOG_LEVEL", "WARNING")


def _build_config(args: argparse.Namespace) -> Configuration:
    config = load_from_yaml(args.config) if args.config else default_configuration()
    if args.strict:
        config = config.replace(strict_mode=True)
    if args.fields:
        config = config.replace(fields_to_check=tuple(f for f in args.fields.split(",") if f))
    return config


def _build_processor(args: argparse.Namespace) -> MaskingProcessor:
    config = _build_config(args)
    if args.audit_db:
        recorder = SqliteAuditRecorder(config.audit_index, db_path=args.audit_db)
    else:
        recorder = LoggingAuditRecorder()
    return MaskingProcessor(config, recorder)


def _close(processor: MaskingProcessor) -> None:
    if isinstance(processor.recorder, SqliteAuditRecorder):
        processor.recorder.close()


def _read_text(args: argparse.Namespace) -> str | None:
    """Read stdin text; None (after a message on stderr) when over --max-length."""
    text = sys.stdin.read()
    if args.max_length and len(text) > args.max_length:
        sys.stderr.write(f"input is {len(text)} characters, over --max-length {args.max_length}\n")
        return None
    return text


def _write_json(data) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_mask(args: argparse.Namespace) -> int:
    """Mask JSON documents on stdin."""
    processor = _build_processor(args)

    raw = json.loads(sys.stdin.read())
    single = isinstance(raw, dict)
    docs = [raw] if single else raw
    if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):
        sys.stderr.write("mask expects a JSON object or an array of objects\n")
        _close(processor)
        return EXIT_USAGE

    outcomes = processor.process_many(IngestDocument.from_dict(d) for d in docs)
    out = [o.to_dict() for o in outcomes]
    _write_json(out[0] if single else out)

    _close(processor)
    return EXIT_BLOCKED if any(o.blocked for o in outcomes) else 0


def cmd_mask_text(args: argparse.Namespace) -> int:
    """Mask plain text on stdin."""
    text = _read_text(args)
    if text is None:
        return EXIT_USAGE
    detector = Detector(_build_config(args).rules)
    result = detector.detect_and_mask(text)
    _write_json(result.to_dict())
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Report whether stdin text contains PII."""
    text = _read_text(args)
    if text is None:
        return EXIT_USAGE
    detector = Detector(_build_config(args).rules)
    found = detector.contains_pii(text)
    _write_json({"contains_pii": found})
    return EXIT_PII_FOUND if found else 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    json.dump(dump_config(_build_config(args)), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    """Dump audit entries recorded in the SQLite audit db."""
    if not args.audit_db:
        sys.stderr.write("audit requires --audit-db (or PII_MASKING_AUDIT_DB)\n")
        return EXIT_USAGE
    config = _build_config(args)
    recorder = SqliteAuditRecorder(config.audit_index, db_path=args.audit_db)
    entries = recorder.entries(document_id=args.document_id)
    json.dump([e.to_dict() for e in entries], sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    recorder.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pii_masking",
        description="Pattern-based PII masking for structured documents",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="YAML config file")
    parser.add_argument("--strict", action="store_true", help="Block documents instead of masking")
    parser.add_argument("--fields", default="", help="Comma-separated field paths to check")
    parser.add_argument("--audit-db", default=DEFAULT_AUDIT_DB, help="SQLite audit trail path")
    parser.add_argument("--max-length", type=int, default=0,
                        help="Reject mask-text/check input longer than this (0 = no limit)")
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("mask", help="Mask JSON documents (stdin)")
    sub.add_parser("mask-text", help="Mask plain text (stdin)")
    sub.add_parser("check", help="Check plain text for PII (stdin)")
    sub.add_parser("config", help="Show effective configuration")
    audit = sub.add_parser("audit", help="Dump audit entries")
    audit.add_argument("--document-id", default=None, help="Only entries for this document")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "mask": cmd_mask,
        "mask-text": cmd_mask_text,
        "check": cmd_check,
        "config": cmd_config,
        "audit": cmd_audit,
    }
    return cmds[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
