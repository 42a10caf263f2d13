"""Log formatting and link-secret redaction."""

import json
import logging

from briefed.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    TokenRedactionFilter,
)


def _record(msg, *args, **extra):
    record = logging.LogRecord("briefed.test", logging.INFO, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redaction_scrubs_query_token_from_message_and_path():
    secret = "a" * 64
    record = _record("GET /respond/p1?token=%s failed", secret, path=f"/respond/p1?token={secret}")
    assert TokenRedactionFilter().filter(record) is True
    assert secret not in record.getMessage()
    assert "token=[redacted]" in record.getMessage()
    assert record.path == "/respond/p1?token=[redacted]"


def test_redaction_scrubs_header_value():
    record = _record("headers: x-magic-token: %s", "b" * 64)
    TokenRedactionFilter().filter(record)
    assert "b" * 64 not in record.getMessage()


def test_redaction_leaves_plain_messages_alone():
    record = _record("Brief submitted (grade %s)", "A", project_id="p1")
    TokenRedactionFilter().filter(record)
    assert record.getMessage() == "Brief submitted (grade A)"


def test_json_formatter_carries_context():
    line = JSONFormatter().format(_record("hello", project_id="p1", event_type="NewMessage"))
    entry = json.loads(line)
    assert entry["msg"] == "hello"
    assert entry["project_id"] == "p1"
    assert entry["event_type"] == "NewMessage"
    assert "actor_kind" not in entry


def test_readable_formatter_shows_context_and_duration():
    line = ReadableFormatter().format(_record("slow", request_id="r1", duration_ms=1234.4))
    assert "request_id=r1" in line
    assert "(1234ms)" in line
