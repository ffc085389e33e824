"""HTTP sidecar server for pii-masking.

Runs as a lightweight stdlib HTTP server on localhost.  An ingest
pipeline calls this over HTTP instead of spawning a process per document.

Endpoints:
    GET  /health          — Health check
    GET  /config          — Current configuration
    PUT  /config          — Replace the current configuration (live)
    POST /mask            — Mask {"document": {...}} or {"documents": [...]}
    POST /mask-text       — Mask {"text": "...", "max_length": N}
    POST /check           — {"text": "...", "max_length": N} → {"contains_pii": bool}

``max_length`` is optional; text longer than it is rejected with a 400.

All endpoints expect/return JSON.  A blocked document is a normal 200
response with ``"blocked": true``; malformed bodies get a 400.
"""

from __future__ import annotations
import json
import logging
import os
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any

from .audit import AuditRecorder, LoggingAuditRecorder
from .audit_sqlite import SqliteAuditRecorder
from .config import (
    ConfigError,
    dump_config,
    get_current_configuration,
    load_config,
    load_from_yaml,
    replace_current_configuration,
)
from .document import IngestDocument
from .processor import MaskingProcessor

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("PII_MASKING_PORT", "18792"))
DEFAULT_AUDIT_DB = os.environ.get("PII_MASKING_AUDIT_DB", "")
DEFAULT_CONFIG = os.environ.get("PII_MASKING_CONFIG", "")

# Shared state
_processor: MaskingProcessor | None = None
_recorder: AuditRecorder | None = None
_audit_db: str = DEFAULT_AUDIT_DB


def _get_recorder(audit_index: str) -> AuditRecorder:
    global _recorder
    stale = isinstance(_recorder, SqliteAuditRecorder) and _recorder.audit_index != audit_index
    if stale:
        _recorder.close()
    if _recorder is None or stale:
        if _audit_db:
            _recorder = SqliteAuditRecorder(audit_index, db_path=_audit_db)
        else:
            _recorder = LoggingAuditRecorder()
    return _recorder


def _get_processor() -> MaskingProcessor:
    """Processor for the current configuration, rebuilt after a swap."""
    global _processor
    config = get_current_configuration()
    if _processor is None or _processor.config is not config:
        _processor = MaskingProcessor(config, _get_recorder(config.audit_index))
    return _processor


class BadRequest(ValueError):
    pass


class MaskingHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the PII masking sidecar."""

    def _read_json(self) -> dict[str, Any]:
        try:
            length = int(self.headers.get("Content-Length", 0))
            body = self.rfile.read(length).decode("utf-8")
            data = json.loads(body) if body else {}
        except json.JSONDecodeError as e:
            raise BadRequest(f"invalid JSON: {e}") from e
        except (ValueError, UnicodeDecodeError) as e:
            raise BadRequest(f"unreadable body: {e}") from e
        if not isinstance(data, dict):
            raise BadRequest("body must be a JSON object")
        return data

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - " + format, self.address_string(), *args)

    def do_GET(self) -> None:
        if self.path == "/health":
            config = get_current_configuration()
            self._respond(200, {
                "status": "ok",
                "enabled": config.enabled,
                "rules": len(_get_processor().detector.patterns),
            })
        elif self.path == "/config":
            self._respond(200, dump_config(get_current_configuration()))
        else:
            self._respond(404, {"error": "not found"})

    def do_PUT(self) -> None:
        if self.path != "/config":
            self._respond(404, {"error": "not found"})
            return
        try:
            config = load_config(self._read_json())
        except (BadRequest, ConfigError) as e:
            self._respond(400, {"error": str(e)})
            return
        replace_current_configuration(config)
        skipped = _get_processor().detector.skipped
        self._respond(200, {
            "status": "replaced",
            "skipped_rules": [{"rule": f.rule_name, "reason": f.reason} for f in skipped],
        })

    def do_POST(self) -> None:
        try:
            body = self._read_json()
            processor = _get_processor()

            if self.path == "/mask":
                if "documents" in body:
                    docs = body["documents"]
                    if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):
                        raise BadRequest("'documents' must be a list of objects")
                    outcomes = processor.process_many(IngestDocument.from_dict(d) for d in docs)
                    self._respond(200, {"results": [o.to_dict() for o in outcomes]})
                else:
                    doc = body.get("document")
                    if not isinstance(doc, dict):
                        raise BadRequest("'document' must be an object")
                    outcome = processor.process(IngestDocument.from_dict(doc))
                    self._respond(200, outcome.to_dict())

            elif self.path == "/mask-text":
                result = processor.detector.detect_and_mask(_text(body))
                self._respond(200, result.to_dict())

            elif self.path == "/check":
                self._respond(200, {"contains_pii": processor.detector.contains_pii(_text(body))})

            else:
                self._respond(404, {"error": "not found"})

        except BadRequest as e:
            self._respond(400, {"error": str(e)})
        except Exception as e:
            logger.exception("Request to %s failed", self.path)
            self._respond(500, {"error": str(e)})


def _text(body: dict[str, Any]) -> str:
    text = body.get("text", "")
    if not isinstance(text, str):
        raise BadRequest("'text' must be a string")
    max_length = body.get("max_length")
    if max_length is not None:
        if isinstance(max_length, bool) or not isinstance(max_length, int) or max_length < 0:
            raise BadRequest("'max_length' must be a non-negative integer")
        if len(text) > max_length:
            raise BadRequest(f"text is {len(text)} characters, over max_length {max_length}")
    return text


def serve(port: int = DEFAULT_PORT, audit_db: str = DEFAULT_AUDIT_DB, config_path: str = DEFAULT_CONFIG) -> None:
    """Start the PII masking HTTP sidecar."""
    global _audit_db
    _audit_db = audit_db
    if config_path:
        replace_current_configuration(load_from_yaml(config_path))

    server = HTTPServer(("127.0.0.1", port), MaskingHandler)
    config = get_current_configuration()
    print(f"pii-masking sidecar listening on http://127.0.0.1:{port}")
    print(f"  rules: {', '.join(config.rules) or '(none)'}")
    print(f"  strict mode: {'on' if config.strict_mode else 'off'}")
    print(f"  audit: {audit_db or 'log'}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="PII masking HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--audit-db", default=DEFAULT_AUDIT_DB)
    parser.add_argument("--config", default=DEFAULT_CONFIG)
    parser.add_argument("--log-level", default=os.environ.get("PII_MASKING_LOG_LEVEL", "INFO"))
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper())
    serve(port=args.port, audit_db=args.audit_db, config_path=args.config)
