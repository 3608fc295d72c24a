"""
Structured logging configuration for deep research.

Provides:
- Console logging with rich formatting (stderr, so stdout stays clean for results)
- Optional file logging
- Log level configuration
- Structured context (session, level, etc.)
"""

import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    rich_tracebacks: bool = True,
    show_time: bool = True,
    show_path: bool = False,
) -> logging.Logger:
    """
    Set up logging for deep research.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        rich_tracebacks: Enable rich exception formatting
        show_time: Show timestamps in console logs
        show_path: Show file paths in console logs

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=rich_tracebacks,
        show_time=show_time,
        show_path=show_path,
        show_level=True,
        markup=False,
        tracebacks_show_locals=False,
    )
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(
        logging.Formatter("%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
    )
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    # Reduce third-party noise
    for noisy in ("httpx", "httpcore", "anthropic", "redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


class StructuredLogger:
    """
    Logger with structured context for research sessions.

    Usage:
        logger = StructuredLogger("orchestrator", session="a1b2c3d4", level=2)
        logger.info("Level merged")
        # Output: [session=a1b2c3d4 level=2] Level merged
    """

    def __init__(self, name: str, **context: Any):
        self.logger = logging.getLogger(name)
        self.context = context

    def _format_message(self, msg: str) -> str:
        if not self.context:
            return msg

        context_str = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{context_str}] {msg}"

    def debug(self, msg: str, **kwargs: Any) -> None:
        self.logger.debug(self._format_message(msg), **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self.logger.info(self._format_message(msg), **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.logger.warning(self._format_message(msg), **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self.logger.error(self._format_message(msg), **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self.logger.exception(self._format_message(msg), **kwargs)

    def add_context(self, **context: Any) -> "StructuredLogger":
        """Create new logger with additional context."""
        return StructuredLogger(self.logger.name, **{**self.context, **context})
