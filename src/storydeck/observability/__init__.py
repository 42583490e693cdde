"""Observability module for StoryDeck (structured logging)."""

from storydeck.observability.logging import (
    bind_project_context,
    bind_session_context,
    clear_log_context,
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "bind_project_context",
    "bind_session_context",
    "clear_log_context",
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
]
