"""Tests for policykit.logging module."""

from __future__ import annotations

import json
import logging

import pytest

from policykit import (
    EngineConfig,
    Enforcer,
    LogLevel,
    PolicyLogFormatter,
    get_enforcer_logger,
    preview_rules,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSafePreview:
    """Tests for safe_preview function."""

    def test_none_value(self) -> None:
        assert safe_preview(None) == ""

    def test_string_with_whitespace(self) -> None:
        assert safe_preview("hello\n\tworld  test") == "hello world test"

    def test_truncation(self) -> None:
        result = safe_preview("a" * 300, limit=100)
        assert len(result) == 100
        assert result.endswith("…")

    def test_rules_render_compactly(self) -> None:
        """A rule list is shown as bracketed field lists."""
        assert safe_preview([["alice", "data1", "read"]]) == "[alice, data1, read]"

    def test_other_containers_render_as_json(self) -> None:
        assert safe_preview({"ptype": "p"}) == '{"ptype": "p"}'


class TestPreviewRules:
    """Tests for preview_rules function."""

    def test_empty(self) -> None:
        assert preview_rules([]) == ""

    def test_long_batches_are_cut(self) -> None:
        """Only the first rules are shown, followed by a count of the rest."""
        rules = [["u%d" % i, "data", "read"] for i in range(7)]
        assert preview_rules(rules, max_rules=2) == "[u0, data, read], [u1, data, read] (+5 more)"


class TestRedactSecrets:
    """Tests for redact_secrets function."""

    def test_password_pattern(self) -> None:
        result = redact_secrets('password: "secret123"')
        assert "[REDACTED]" in result
        assert "secret123" not in result

    def test_bearer_token(self) -> None:
        assert redact_secrets("Authorization: Bearer abc123def456") == "Authorization: Bearer [REDACTED]"

    def test_label_is_kept(self) -> None:
        assert redact_secrets("api_key=sk-1234567890") == "api_key=[REDACTED]"

    @pytest.mark.parametrize(
        "field",
        [
            "/api/key=orders",
            "d41d8cd98f00b204e9800998ecf8427e",
            "keyring:read",
        ],
    )
    def test_rule_fields_untouched(self, field: str) -> None:
        """Paths, hashed resource ids and key-like words are ordinary rule fields."""
        assert redact_secrets(field) == field

    def test_no_secrets(self) -> None:
        text = "alice may read data1"
        assert redact_secrets(text) == text

    def test_custom_replacement(self) -> None:
        assert "[HIDDEN]" in redact_secrets("token=abc", replacement="[HIDDEN]")

    def test_safe_log_value(self) -> None:
        assert "[REDACTED]" in safe_log_value("api_key: sk-1234567890")
        assert "sk-1234567890" in safe_log_value("api_key: sk-1234567890", redact=False)


class TestFormatter:
    """Tests for PolicyLogFormatter."""

    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("policykit.test", logging.INFO, __file__, 1, "Policy %s", ("loaded",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_output(self) -> None:
        formatter = PolicyLogFormatter(json_format=True)
        data = json.loads(formatter.format(self._record(enforcer_id="e1", rules=[["a", "o", "r"]])))
        assert data["message"] == "Policy loaded"
        assert data["enforcer_id"] == "e1"
        assert data["rules"] == "[a, o, r]"

    def test_plain_output(self) -> None:
        formatter = PolicyLogFormatter(json_format=False)
        line = formatter.format(self._record(enforcer_id="e1"))
        assert "INFO" in line
        assert "enforcer_id=e1" in line
        assert line.endswith(": Policy loaded")


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_with_config(self) -> None:
        setup_logging(config=EngineConfig(log_level=LogLevel.DEBUG), json_format=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_json_format(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=EngineConfig(log_json=True))
        logging.getLogger("test").info("Test message")
        data = json.loads(capsys.readouterr().err.strip())
        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["logger"] == "test"

    def test_plain_format(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=EngineConfig(), json_format=False)
        logging.getLogger("test").info("Test message")
        output = capsys.readouterr().err.strip()
        assert "Test message" in output
        assert not output.startswith("{")


class TestEnforcerLogger:
    """Tests for the enforcer logger adapter."""

    def test_enforcer_id_on_records(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_enforcer_logger("policykit.test", enforcer_id="orders")
        with caplog.at_level(logging.INFO, logger="policykit.test"):
            logger.info("Policy loaded", extra={"rules": 3})
        record = caplog.records[0]
        assert record.enforcer_id == "orders"
        assert record.rules == 3

    def test_mutations_log_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        e = Enforcer(enforcer_id="e-debug")
        with caplog.at_level(logging.DEBUG, logger="policykit.enforcer"):
            e.add_policy("alice", "data1", "read")
        records = [r for r in caplog.records if getattr(r, "enforcer_id", None) == "e-debug"]
        assert records
        assert records[0].levelno == logging.DEBUG
        assert "alice" in records[0].getMessage()
