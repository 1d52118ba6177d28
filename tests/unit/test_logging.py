"""
Unit tests for logging utilities.
"""
import pytest

from ledgerlens.middleware.logging import (
    add_correlation_id_processor,
    correlation_id,
    log_performance,
    redact_sensitive_data,
    redact_sensitive_processor,
)


class TestRedaction:
    """Tests for sensitive data redaction."""

    def test_redacts_company_identifiers(self):
        data = {"cnpj": "12.345.678/0001-90", "company_cpf": "123.456.789-00", "lines": 10}

        redacted = redact_sensitive_data(data)

        assert redacted["cnpj"] == "[REDACTED]"
        assert redacted["company_cpf"] == "[REDACTED]"
        assert redacted["lines"] == 10

    def test_redacts_nested(self):
        data = {"headers": {"Authorization": "Bearer abc"}, "items": [{"api_key": "k"}, 3]}

        redacted = redact_sensitive_data(data)

        assert redacted["headers"]["Authorization"] == "[REDACTED]"
        assert redacted["items"] == [{"api_key": "[REDACTED]"}, 3]

    def test_original_untouched(self):
        data = {"token": "secret-value"}
        redact_sensitive_data(data)

        assert data["token"] == "secret-value"

    def test_processor(self):
        event = redact_sensitive_processor(None, "info", {"event": "x", "cnpj": "1"})

        assert event == {"event": "x", "cnpj": "[REDACTED]"}


class TestCorrelationId:

    def test_processor_adds_correlation_id(self):
        token = correlation_id.set("abc-123")
        try:
            event = add_correlation_id_processor(None, "info", {"event": "x"})
        finally:
            correlation_id.reset(token)

        assert event["correlation_id"] == "abc-123"


class TestLogPerformance:

    def test_sync_function(self):
        @log_performance("double")
        def double(x):
            return x * 2

        assert double(4) == 8
        assert double.__name__ == "double"

    def test_exception_propagates(self):
        @log_performance("explode")
        def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode()

    @pytest.mark.asyncio
    async def test_async_function(self):
        @log_performance("double_async")
        async def double(x):
            return x * 2

        assert await double(5) == 10
