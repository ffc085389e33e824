"""Tests for configuration loading, the CLI and the HTTP sidecar."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import dataclasses
import io
import json
import threading
import urllib.error
import urllib.request
from http.server import HTTPServer

import pytest

from pii_masking import (
    ConfigError,
    Configuration,
    ConfigurationHolder,
    MaskingRule,
    default_configuration,
    dump_config,
    get_current_configuration,
    load_config,
    load_from_yaml,
    replace_current_configuration,
)
from pii_masking import cli, server


# ── Loading ──────────────────────────────────────────────────────────

def test_load_config_defaults():
    config = load_config({})
    assert config.enabled is True
    assert config.audit_index == "pii-audit-log"
    assert dict(config.rules) == {}
    assert config.fields_to_check == ("message",)
    assert config.strict_mode is False


def test_load_config_nested_and_ordered():
    config = load_config({
        "pii_masking": {
            "strict_mode": True,
            "audit_index": "audit-x",
            "fields_to_check": ["body", "user.phone"],
            "masking": {
                "phone": {"pattern": r"\d{3}-\d{4}", "mask": "***-****"},
                "email": {"pattern": r"\S+@\S+", "mask": "[email]"},
            },
        }
    })
    assert config.strict_mode is True
    assert config.audit_index == "audit-x"
    assert config.fields_to_check == ("body", "user.phone")
    assert list(config.rules) == ["phone", "email"]
    assert config.rules["email"] == MaskingRule(r"\S+@\S+", "[email]")


def test_invalid_regex_is_not_a_config_error():
    config = load_config({"masking": {"bad": {"pattern": "([", "mask": "X"}}})
    assert config.rules["bad"].pattern == "(["


@pytest.mark.parametrize("data", [
    {"masking": {"email": {"pattern": "x"}}},
    {"masking": {"email": {"mask": "x"}}},
    {"masking": {"email": {"pattern": 5, "mask": "x"}}},
    {"masking": {"email": "x"}},
    {"masking": ["email"]},
    {"enabled": "yes"},
    {"strict_mode": 1},
    {"fields_to_check": "message"},
    {"audit_index": 3},
])
def test_malformed_config_raises(data):
    with pytest.raises(ConfigError):
        load_config(data)


def test_dump_and_load_round_trip():
    config = default_configuration()
    assert load_config(dump_config(config)) == config
    assert load_config(json.loads(json.dumps(dump_config(config)))) == config


def test_load_from_yaml(tmp_path):
    path = tmp_path / "masking.yaml"
    path.write_text(r"""
pii_masking:
  strict_mode: true
  fields_to_check: [message]
  masking:
    ssn:
      pattern: '\b\d{3}-\d{2}-\d{4}\b'
      mask: '***-**-****'
""")
    config = load_from_yaml(path)
    assert config.strict_mode is True
    assert config.rules["ssn"] == MaskingRule(r"\b\d{3}-\d{2}-\d{4}\b", "***-**-****")


def test_default_configuration():
    config = default_configuration()
    assert list(config.rules) == ["email", "ssn", "credit_card", "phone"]
    assert config.fields_to_check == ("message", "user.email", "details")
    assert config.rules["credit_card"].mask == "****-****-****-****"
    assert config.enabled and not config.strict_mode


# ── Immutability / swap ──────────────────────────────────────────────

def test_configuration_is_immutable():
    rules = {"email": MaskingRule("x", "y")}
    config = Configuration(rules=rules)
    rules["ssn"] = MaskingRule("a", "b")
    assert list(config.rules) == ["email"]
    with pytest.raises(TypeError):
        config.rules["ssn"] = MaskingRule("a", "b")
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.strict_mode = True


def test_replace_returns_new_snapshot():
    config = default_configuration()
    strict = config.replace(strict_mode=True)
    assert strict.strict_mode and not config.strict_mode
    assert dict(strict.rules) == dict(config.rules)


def test_holder_swaps_whole_value():
    first = default_configuration()
    second = first.replace(enabled=False)
    holder = ConfigurationHolder(first)
    assert holder.replace(second) is first
    assert holder.get() is second
    with pytest.raises(TypeError):
        holder.replace({"enabled": True})


def test_current_configuration_slot(restore_current_config):
    new = default_configuration().replace(audit_index="elsewhere")
    replace_current_configuration(new)
    assert get_current_configuration() is new


# ── CLI ──────────────────────────────────────────────────────────────

def _run(monkeypatch, capsys, argv, stdin=""):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    code = cli.main(argv)
    return code, capsys.readouterr().out


def test_cli_mask_document(monkeypatch, capsys):
    doc = {"_id": "1", "message": "Contact john.doe@example.com"}
    code, out = _run(monkeypatch, capsys, ["mask"], json.dumps(doc))
    assert code == 0
    result = json.loads(out)
    assert result["blocked"] is False
    assert result["document"]["message"] == "Contact ****@example.com"


def test_cli_mask_strict_blocks(monkeypatch, capsys):
    docs = [{"message": "fine"}, {"message": "SSN: 123-45-6789"}]
    code, out = _run(monkeypatch, capsys, ["--strict", "mask"], json.dumps(docs))
    assert code == cli.EXIT_BLOCKED
    results = json.loads(out)
    assert results[0]["blocked"] is False
    assert results[1] == {"blocked": True, "rule_names": ["ssn"], "field": "message"}


def test_cli_mask_text(monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["mask-text"], "SSN: 123-45-6789")
    assert code == 0
    assert json.loads(out) == {
        "text": "SSN: ***-**-****",
        "detections": [{"type": "ssn", "original": "123-45-6789", "masked": "***-**-****"}],
    }


def test_cli_check(monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["check"], "call 555-123-4567")
    assert code == cli.EXIT_PII_FOUND
    assert json.loads(out) == {"contains_pii": True}
    code, out = _run(monkeypatch, capsys, ["check"], "nothing here")
    assert code == 0
    assert json.loads(out) == {"contains_pii": False}


def test_cli_config_and_fields(monkeypatch, capsys):
    code, out = _run(monkeypatch, capsys, ["--fields", "body,title", "config"])
    assert code == 0
    data = json.loads(out)
    assert data["fields_to_check"] == ["body", "title"]
    assert list(data["masking"]) == ["email", "ssn", "credit_card", "phone"]


def test_cli_audit_trail(monkeypatch, capsys, tmp_path):
    db = str(tmp_path / "audit.db")
    _run(monkeypatch, capsys, ["--audit-db", db, "mask"],
         json.dumps({"_id": "7", "_index": "logs", "message": "a@b.com"}))
    code, out = _run(monkeypatch, capsys, ["--audit-db", db, "audit"])
    assert code == 0
    entries = json.loads(out)
    assert len(entries) == 1
    assert entries[0]["document_id"] == "7"
    assert entries[0]["original_value"] == "a@b.com"


def test_cli_mask_rejects_non_document_input(monkeypatch, capsys):
    for stdin in ("[1]", "5", '[{"message": "ok"}, "x"]'):
        monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
        assert cli.main(["mask"]) == cli.EXIT_USAGE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "mask expects a JSON object or an array of objects" in captured.err


def test_cli_max_length(monkeypatch, capsys):
    text = "mail john@acme.com"
    for command in ("mask-text", "check"):
        monkeypatch.setattr(sys, "stdin", io.StringIO(text))
        assert cli.main(["--max-length", "5", command]) == cli.EXIT_USAGE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "over --max-length 5" in captured.err

    code, out = _run(monkeypatch, capsys, ["--max-length", "100", "mask-text"], text)
    assert code == 0
    assert json.loads(out)["text"] == "mail ****@example.com"


# ── HTTP sidecar ─────────────────────────────────────────────────────

@pytest.fixture
def sidecar(restore_current_config, monkeypatch):
    monkeypatch.setattr(server, "_processor", None)
    monkeypatch.setattr(server, "_recorder", None)
    monkeypatch.setattr(server, "_audit_db", "")
    httpd = HTTPServer(("127.0.0.1", 0), server.MaskingHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


def _call(url, method="GET", body=None):
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(url, data=data, method=method,
                                 headers={"Content-Type": "application/json"})
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_sidecar_health_and_config(sidecar):
    status, data = _call(sidecar + "/health")
    assert status == 200
    assert data["status"] == "ok"
    assert data["rules"] == 4
    status, data = _call(sidecar + "/config")
    assert data == dump_config(get_current_configuration())


def test_sidecar_mask(sidecar):
    status, data = _call(sidecar + "/mask", "POST",
                         {"document": {"_id": "1", "message": "john@acme.com"}})
    assert status == 200
    assert data["document"]["message"] == "****@example.com"

    status, data = _call(sidecar + "/mask-text", "POST", {"text": "SSN: 123-45-6789"})
    assert data["text"] == "SSN: ***-**-****"

    status, data = _call(sidecar + "/check", "POST", {"text": "no pii"})
    assert data == {"contains_pii": False}


def test_sidecar_live_config_replace(sidecar):
    new = {
        "strict_mode": True,
        "fields_to_check": ["note"],
        "masking": {
            "employee": {"pattern": r"EMP-\d{6}", "mask": "EMP-******"},
            "broken": {"pattern": "([", "mask": "X"},
        },
    }
    status, data = _call(sidecar + "/config", "PUT", new)
    assert status == 200
    assert [s["rule"] for s in data["skipped_rules"]] == ["broken"]

    status, data = _call(sidecar + "/mask", "POST",
                         {"documents": [{"note": "EMP-123456"}, {"note": "hello"}]})
    assert status == 200
    assert data["results"][0] == {"blocked": True, "rule_names": ["employee"], "field": "note"}
    assert data["results"][1]["blocked"] is False


def test_sidecar_rejects_bad_requests(sidecar):
    status, data = _call(sidecar + "/config", "PUT", {"masking": {"x": {"pattern": "a"}}})
    assert status == 400
    assert "missing 'mask'" in data["error"]

    status, _ = _call(sidecar + "/mask", "POST", {"document": "nope"})
    assert status == 400

    status, _ = _call(sidecar + "/nowhere", "POST", {})
    assert status == 404


def _call_raw(url, method, data):
    req = urllib.request.Request(url, data=data, method=method,
                                 headers={"Content-Type": "application/json"})
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_sidecar_rejects_non_utf8_body(sidecar):
    status, data = _call_raw(sidecar + "/config", "PUT", b'{"masking": "\xff"}')
    assert status == 400
    assert "unreadable body" in data["error"]

    status, data = _call_raw(sidecar + "/mask-text", "POST", b'{"text": "\xff"}')
    assert status == 400
    assert "unreadable body" in data["error"]

    status, data = _call(sidecar + "/health")
    assert status == 200


def test_sidecar_max_length(sidecar):
    status, data = _call(sidecar + "/mask-text", "POST", {"text": "a@b.com", "max_length": 3})
    assert status == 400
    assert "over max_length 3" in data["error"]

    status, data = _call(sidecar + "/check", "POST", {"text": "a@b.com", "max_length": 3})
    assert status == 400

    status, data = _call(sidecar + "/mask-text", "POST", {"text": "a@b.com", "max_length": 7})
    assert status == 200
    assert data["text"] == "****@example.com"

    for bad in ("x", -1, True):
        status, data = _call(sidecar + "/check", "POST", {"text": "hi", "max_length": bad})
        assert status == 400
        assert "'max_length' must be a non-negative integer" in data["error"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
