"""Tests for the card-aware log formatter and adapter."""

import logging

import pytest

from marketing_agents.utils.rich_logging import AgentLogFormatter, ContextLogger, setup_rich_logging


def _make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("marketing_agents.test", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestAgentLogFormatter:
    def test_includes_component_phase_and_card(self):
        line = AgentLogFormatter("orchestrator", use_colors=False).format(
            _make_record(card_id="c1", phase="producing")
        )

        assert "[orchestrator] [producing] [c1] hello" in line
        assert "INFO" in line

    def test_omits_missing_context(self):
        line = AgentLogFormatter("orchestrator", use_colors=False).format(_make_record())

        assert line.endswith("[orchestrator] hello")

    def test_colors_only_when_enabled(self):
        record = _make_record(level=logging.ERROR)

        assert "\033[31m" in AgentLogFormatter("x", use_colors=True).format(record)
        assert "\033[" not in AgentLogFormatter("x", use_colors=False).format(record)


class TestContextLogger:
    @pytest.fixture
    def adapter(self):
        return ContextLogger(logging.getLogger("marketing_agents.test_ctx"), "test")

    def test_process_adds_current_context(self, adapter):
        adapter.set_card_context(card_id="c9", phase="producing")

        _, kwargs = adapter.process("msg", {})

        assert kwargs["extra"] == {"card_id": "c9", "phase": "producing"}

    def test_explicit_extra_wins(self, adapter):
        adapter.set_card_context(card_id="c9")

        _, kwargs = adapter.process("msg", {"extra": {"card_id": "other"}})

        assert kwargs["extra"]["card_id"] == "other"

    def test_task_completed_clears_context(self, adapter):
        adapter.task_started("c1", "Audit", "SEO Agent")
        adapter.phase_change("executing_llm")
        assert adapter.current_phase == "executing_llm"

        adapter.task_completed(1.5, "Review")

        assert adapter.current_card_id is None
        assert adapter.current_phase is None

    def test_task_failed_clears_context(self, adapter):
        adapter.task_started("c1", "Audit", "SEO Agent")

        adapter.task_failed("boom")

        assert adapter.current_card_id is None


class TestSetupRichLogging:
    @pytest.fixture(autouse=True)
    def restore_package_logger(self):
        package_logger = logging.getLogger("marketing_agents")
        saved = (package_logger.handlers[:], package_logger.level, package_logger.propagate)
        yield
        for handler in package_logger.handlers[:]:
            handler.close()
            package_logger.removeHandler(handler)
        package_logger.handlers[:] = saved[0]
        package_logger.setLevel(saved[1])
        package_logger.propagate = saved[2]

    def test_writes_log_file(self, tmp_path):
        log = setup_rich_logging("orchestrator", tmp_path, log_level="DEBUG")

        log.info("started")
        for handler in logging.getLogger("marketing_agents").handlers:
            handler.flush()

        content = (tmp_path / "logs" / "orchestrator.log").read_text(encoding="utf-8")
        assert "[orchestrator] started" in content

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        setup_rich_logging("orchestrator", tmp_path, use_file=False)
        setup_rich_logging("orchestrator", tmp_path, use_file=False)

        assert len(logging.getLogger("marketing_agents").handlers) == 1
