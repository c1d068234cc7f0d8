import logging

from core.error_handler import StructuredLogger, set_correlation_id


def test_structured_logger_redacts_sensitive_keys(monkeypatch):
    logger = StructuredLogger("tests")
    monkeypatch.setenv("ENVIRONMENT", "development")

    # use non-sensitive placeholder values to avoid secret-detection false positives
    data = {
        "password": "placeholder_password",  # pragma: allowlist secret
        "email": "me@example.com",
        "slot": "role-1:cover_letter",
    }
    sanitized = logger._sanitize_data(data)

    assert sanitized["password"] == "[REDACTED]"
    assert sanitized["email"] == "[REDACTED]"
    assert sanitized["slot"] == "role-1:cover_letter"


def test_structured_logger_redacts_draft_content():
    logger = StructuredLogger("tests")

    sanitized = logger._sanitize_data(
        {
            "guidance": "mention my startup",
            "buffered_text": "Dear hiring team",
            "kind": "role.cover_letter",
            "request": {"transcript": "Q: tell me about...", "generation": 2},
            "candidates": ["one", "two"],
        }
    )

    assert sanitized["guidance"] == "[REDACTED]"
    assert sanitized["buffered_text"] == "[REDACTED]"
    assert sanitized["kind"] == "role.cover_letter"
    assert sanitized["request"] == {"transcript": "[REDACTED]", "generation": 2}
    assert sanitized["candidates"] == "[REDACTED]"


def test_structured_logger_includes_correlation_id(caplog):
    logger = StructuredLogger("tests.correlation")
    set_correlation_id("cid-42")

    with caplog.at_level(logging.INFO, logger="tests.correlation"):
        logger.info("Draft accepted", slot="role-1:cover_letter", text="secret draft")

    record = caplog.records[-1]
    assert "[cid-42] Draft accepted" in record.getMessage()
    assert "slot=role-1:cover_letter" in record.getMessage()
    assert "secret draft" not in record.getMessage()
    assert record.structured_data["correlation_id"] == "cid-42"
    set_correlation_id(None)
