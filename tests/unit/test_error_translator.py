"""Tests for ErrorTranslator: user-facing messages for CLI and card comments."""

import pytest

from marketing_agents.errors import (
    ConfigurationError,
    PathTraversalError,
    RequestTimeoutError,
    TaskInterruptedError,
    UpstreamHttpError,
    ValidationError,
)
from marketing_agents.errors.translator import ErrorTranslator, UserFriendlyError


@pytest.fixture
def translator():
    return ErrorTranslator()


class TestTranslate:
    def test_timeout(self, translator):
        result = translator.translate(RequestTimeoutError("LLM call timed out after 120s: claude"))

        assert isinstance(result, UserFriendlyError)
        assert result.title == "Request timed out"
        assert result.actions[0].startswith("Timeout:")

    def test_interrupted_task(self, translator):
        error = TaskInterruptedError("Orchestrator stopped while processing \"Audit timeout pages\"")
        assert translator.translate(error).title == "Task interrupted"

    def test_plain_timeout_error_message(self, translator):
        assert translator.translate(TimeoutError("timeout")).title == "Request timed out"

    def test_rate_limit(self, translator):
        error = UpstreamHttpError("HTTP 429 Too Many Requests on POST https://api", status=429)
        assert translator.translate(error).title == "API rate limit exceeded"

    def test_auth(self, translator):
        error = UpstreamHttpError("HTTP 401 Unauthorized on GET https://api", status=401)
        result = translator.translate(error)
        assert result.title == "Authentication failed"
        assert result.documentation

    def test_not_found(self, translator):
        assert translator.translate(Exception("404 not found")).title == "Resource not found"

    def test_path_traversal(self, translator):
        error = PathTraversalError('Security: path traversal detected, "../x" escapes base directory')
        assert translator.translate(error).title == "Unsafe deliverable path rejected"

    def test_validation(self, translator):
        error = ValidationError("domain", "marketing", ["seo"])
        assert translator.translate(error).title == "Invalid value"

    def test_configuration(self, translator):
        error = ConfigurationError("Missing required setting(s): TRELLO_TOKEN")
        assert translator.translate(error).title == "Configuration missing"

    def test_case_insensitive(self, translator):
        assert translator.translate(Exception("CONNECTION REFUSED")).title == "Cannot connect to service"

    def test_unknown_error_fallback(self, translator):
        result = translator.translate(RuntimeError("x" * 1000))

        assert result.title == "Unexpected error"
        assert len(result.explanation) == 500
        assert result.show_technical


class TestFormatting:
    def test_cli_format_lists_actions(self, translator):
        friendly = translator.translate(ConfigurationError("Missing required setting(s): X"))

        output = translator.format_for_cli(friendly)

        assert "[bold red]Configuration missing[/]" in output
        assert "How to fix:" in output
        assert "  1. " in output
        assert "Learn more" in output

    def test_cli_format_shows_technical_for_unknown(self, translator):
        friendly = translator.translate(RuntimeError("boom"))
        assert "Technical details" in translator.format_for_cli(friendly)

    def test_comment_format(self, translator):
        friendly = translator.translate(RequestTimeoutError("timed out"))

        comment = translator.format_for_comment(friendly, "timed out")

        assert comment.startswith("⚠️ **Automatic processing failed**")
        assert "**Request timed out**" in comment
        assert "```\ntimed out\n```" in comment
        assert "- Timeout: retry the card by moving it back to Todo" in comment
