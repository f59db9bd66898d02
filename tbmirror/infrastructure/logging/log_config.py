"""Logging setup for the command line.

Log records go to stderr so that command output on stdout stays clean.
Levels are set per category from Settings: the outbound HTTP loggers are
quiet by default while the walk loggers report each stage.
"""

import logging
import sys

from tbmirror.config import Settings, get_settings
from tbmirror.infrastructure.logging.colored_logger import set_color_enabled

LOG_FORMAT = "%(levelname)-8s %(name)s: %(message)s"

# Settings field -> logger names it controls
LOGGER_CATEGORIES: dict[str, tuple[str, ...]] = {
    "log_level_http": ("httpx", "httpcore", "tbmirror.infrastructure.platform"),
    "log_level_walk": ("Exporter", "Importer", "Converter", "tbmirror.application.services"),
}

_HANDLER_NAME = "tbmirror-stderr"


def setup_logging(settings: Settings | None = None) -> None:
    """Apply the configured levels; safe to call once per command."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        root.addHandler(_stderr_handler())

    set_color_enabled(settings.log_color and sys.stderr.isatty())

    for field_name, logger_names in LOGGER_CATEGORIES.items():
        level = _parse_level(getattr(settings, field_name))
        for logger_name in logger_names:
            logging.getLogger(logger_name).setLevel(level)


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever sys.stderr is at emit time."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def _stderr_handler() -> logging.Handler:
    handler = _StderrHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
