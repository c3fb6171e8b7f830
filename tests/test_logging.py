import json
import logging

from contractor_ai.core.logging import JSONFormatter


def _record(msg="Scope cache hit %s", args=("abc123",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("contractor_ai.gateway.gateway", logging.INFO, __file__, 1, msg, args, None)
    for name, value in extra.items():
        setattr(record, name, value)
    return record


def test_json_formatter_basic_fields():
    data = json.loads(JSONFormatter().format(_record()))

    assert data["level"] == "INFO"
    assert data["logger"] == "contractor_ai.gateway.gateway"
    assert data["message"] == "Scope cache hit abc123"
    assert "tenant_id" not in data


def test_json_formatter_context_extras():
    record = _record(tenant_id="acme", operation="scope", fingerprint="abc123", unrelated="x", request_id="r-1")
    data = json.loads(JSONFormatter().format(record))

    assert data["tenant_id"] == "acme"
    assert data["operation"] == "scope"
    assert data["fingerprint"] == "abc123"
    assert "unrelated" not in data
    assert "request_id" not in data
