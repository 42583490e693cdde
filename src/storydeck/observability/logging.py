"""Structured logging configuration for StoryDeck.

Console output goes through rich at a level picked by the ``-v`` count.
With ``--log`` every event is also appended to ``{project}/logs/debug.jsonl``.
Events carry the active project and play session once they are bound.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None

LOG_FILE_NAME = "debug.jsonl"


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes one JSON object per record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, object] = {
                "timestamp": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
            }
            # structlog hands its event dict over as record.msg
            if isinstance(record.msg, dict):
                event_dict = dict(record.msg)
                event_dict.pop("level", None)
                event_dict.pop("timestamp", None)
                entry["event"] = event_dict.pop("event", "")
                entry.update(event_dict)
            else:
                entry["event"] = record.getMessage()

            if self.stream:
                self.stream.write(json.dumps(entry, default=str) + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    project_path: Path | None = None,
) -> None:
    """Configure console and optional file logging.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG.
        log_to_file: Also write JSONL records under ``{project_path}/logs/``.
        project_path: Project directory. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but project_path is not provided.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and project_path is None:
        raise ValueError("project_path is required when log_to_file=True")

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None

    console_level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=verbosity >= 1,
            show_path=verbosity >= 2,
            level=console_level,
        )
    ]

    if log_to_file and project_path:
        _logs_dir = project_path / "logs"
        _logs_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = JSONLFileHandler(str(_logs_dir / LOG_FILE_NAME), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring logging on first use.

    Args:
        name: Logger name (typically __name__).
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def bind_project_context(name: str, path: Path) -> None:
    """Tag every following event with the active project.

    Replaces whatever context an earlier command bound.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(project=name, project_path=str(path))


def bind_session_context(session_id: str) -> None:
    """Tag every following event with the play session being driven."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logs_dir() -> Path | None:
    """Directory receiving JSONL logs, or None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Close the JSONL file handler if one is open."""
    global _file_handler
    if _file_handler:
        _file_handler.close()
        _file_handler = None
