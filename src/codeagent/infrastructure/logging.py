"""
Logging setup and raw transcript sink.

``configure_logging`` sets up structlog for the CLI. ``TranscriptLog`` is an
explicitly owned file sink for raw model transcripts; nothing is written
or deleted unless a caller opens one.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

import structlog


def configure_logging(level: str = "WARNING", json_output: bool = False) -> None:
    """Configure structlog with a level filter and console or JSON rendering."""
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


class TranscriptLog:
    """
    Append-only file of raw prompt and completion sections.

    The owner decides the lifetime: ``open`` truncates the file when
    ``truncate`` is set, ``close`` releases it. Also usable as a context
    manager.
    """

    def __init__(self, path: str | Path, truncate: bool = True):
        self.path = Path(path)
        self.truncate = truncate
        self._handle: TextIO | None = None
        self.logger = structlog.get_logger().bind(component="transcript_log")

    def open(self) -> "TranscriptLog":
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.path, "w" if self.truncate else "a", encoding="utf-8")
            self.logger.debug("transcript_opened", path=str(self.path))
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "TranscriptLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, section: str, content: str) -> None:
        """Append one titled section. Opens the file lazily."""
        if self._handle is None:
            self.open()
        timestamp = datetime.now().isoformat(timespec="seconds")
        self._handle.write(f"===== {section} [{timestamp}] =====\n{content}\n\n")
        self._handle.flush()
