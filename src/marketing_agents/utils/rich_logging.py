"""Console and file logging for the orchestrator, tagged with the card being processed."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "marketing_agents"

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

PHASE_EMOJI = {
    "executing_llm": "🤖",
    "producing": "📦",
    "updating_board": "📊",
    "reporting_failure": "🚨",
}


class AgentLogFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [component] [phase] [card] message``"""

    def __init__(self, name: str, use_colors: bool = True):
        super().__init__()
        self.component = name
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:8s}"
        if self.use_colors and record.levelname in LEVEL_COLORS:
            level = f"{LEVEL_COLORS[record.levelname]}{level}{RESET}"

        tags = [f"[{self.component}]"]
        for attr in ("phase", "card_id"):
            value = getattr(record, attr, None)
            if value:
                tags.append(f"[{value}]")

        message = record.getMessage()
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message = f"{message}\n{record.exc_text}"

        return f"{timestamp} {level} {' '.join(tags)} {message}"


class ContextLogger(logging.LoggerAdapter):
    """Adapter that stamps ``card_id`` and ``phase`` onto every record."""

    def __init__(self, logger: logging.Logger, name: str):
        super().__init__(logger, {})
        self.component = name
        self.current_card_id: Optional[str] = None
        self.current_phase: Optional[str] = None

    def set_card_context(self, card_id: Optional[str] = None, phase: Optional[str] = None):
        if card_id:
            self.current_card_id = card_id
        if phase is not None:
            self.current_phase = phase

    def clear_context(self):
        self.current_card_id = None
        self.current_phase = None

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        if self.current_card_id:
            extra.setdefault("card_id", self.current_card_id)
        if self.current_phase:
            extra.setdefault("phase", self.current_phase)
        kwargs["extra"] = extra
        return msg, kwargs

    def task_started(self, card_id: str, title: str, agent_name: str):
        self.set_card_context(card_id=card_id, phase="")
        self.info(f"📋 Assigning \"{title}\" to {agent_name}")

    def phase_change(self, phase: str):
        self.set_card_context(phase=phase)
        self.debug(f"{PHASE_EMOJI.get(phase.lower(), '▶️')} Phase: {phase}")

    def task_completed(self, duration_seconds: float, status: str):
        self.info(f"✅ Task completed in {duration_seconds:.1f}s ({status})")
        self.clear_context()

    def task_failed(self, error: str):
        self.error(f"❌ Task failed: {error}")
        self.clear_context()


def setup_rich_logging(
    name: str,
    workspace: Path,
    log_level: str = "INFO",
    use_file: bool = True,
    use_json: bool = False,
) -> ContextLogger:
    """
    Configure the package logger and return a context logger for ``name``.

    Handlers go on the ``marketing_agents`` logger, so every module logger
    (``logging.getLogger(__name__)``) inherits them. Calling this again
    replaces the previous handlers.

    Args:
        name: Component name shown in each line and used for the log file
        workspace: Workspace path (log files go to ``<workspace>/logs``)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_file: Also write ``logs/<name>.log``
        use_json: One JSON object per line instead of the coloured format

    Returns:
        ContextLogger instance
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, log_level.upper()))
    package_logger.propagate = False

    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)

    if use_json:
        formatter = logging.Formatter(
            '{"timestamp":"%(asctime)s","component":"%(component)s","level":"%(levelname)s",'
            '"message":"%(message)s","module":"%(module)s","function":"%(funcName)s"}',
            defaults={"component": name},
        )
    else:
        formatter = AgentLogFormatter(name, use_colors=sys.stderr.isatty())

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if use_file:
        log_dir = workspace / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
        file_handler.setFormatter(AgentLogFormatter(name, use_colors=False))
        package_logger.addHandler(file_handler)

    return ContextLogger(logging.getLogger(f"{PACKAGE_LOGGER}.{name}"), name)
