"""Colored walk logger for backup, restore and convert runs.

Every line is tagged with the category being walked, and the tag is
colored per category so a tenant walk is easy to follow in a terminal:

    Blue    Tenants
    Magenta Rule chains
    Yellow  Widgets
    Cyan    Dashboards
    Green   Devices
    White   Customers, conversion
    Red     Failures
    Gray    Details and counters
"""

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
MAGENTA = "\033[95m"
CYAN = "\033[96m"
WHITE = "\033[97m"
GRAY = "\033[90m"


class WalkStage(Enum):
    """Walk categories as (tag, ANSI color)."""

    TENANT = ("TENANT", BLUE)
    RULE_CHAINS = ("RULE_CHAINS", MAGENTA)
    WIDGETS = ("WIDGETS", YELLOW)
    DASHBOARDS = ("DASHBOARDS", CYAN)
    DEVICES = ("DEVICES", GREEN)
    CUSTOMERS = ("CUSTOMERS", WHITE)
    CONVERT = ("CONVERT", WHITE)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def color(self) -> str:
        return self.value[1]


_color_enabled = True


def set_color_enabled(enabled: bool) -> None:
    """Turn ANSI colors on or off for every WalkLogger."""
    global _color_enabled
    _color_enabled = enabled


def _paint(text: str, *codes: str) -> str:
    if not _color_enabled or not codes:
        return text
    return f"{''.join(codes)}{text}{RESET}"


def _fields(kwargs: dict[str, Any]) -> str:
    if not kwargs:
        return ""
    return " " + _paint("(" + ", ".join(f"{k}={v}" for k, v in kwargs.items()) + ")", GRAY)


class WalkLogger:
    """Logger for one walk component (Exporter, Importer, Converter).

    Usage:
        log = WalkLogger("Exporter")
        with log.timed_step(WalkStage.DEVICES, "Exporting devices", count=42):
            ...
        log.stats(succeeded=41, failed=1)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)

    def _tag(self, stage: WalkStage, *codes: str) -> str:
        return _paint(f"[{stage.label}]", *(codes or (stage.color,)))

    def step_start(self, stage: WalkStage, message: str, **kwargs: Any) -> None:
        line = f"{self._tag(stage, stage.color, BOLD)} {_paint(message, stage.color)}"
        self._logger.info(line + _fields(kwargs))

    def step_complete(self, stage: WalkStage, message: str, **kwargs: Any) -> None:
        line = f"{self._tag(stage)} {_paint('done: ' + message, GREEN)}"
        self._logger.info(line + _fields(kwargs))

    def step_error(
        self, stage: WalkStage, message: str, error: BaseException | None = None
    ) -> None:
        """Log a failure in red, with the exception type and text when given."""
        line = f"{self._tag(stage, RED, BOLD)} {_paint(message, RED)}"
        if error is not None:
            line += " " + _paint(f"({type(error).__name__}: {error})", DIM)
        self._logger.error(line)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(_paint(f"  ! {message}", YELLOW) + _fields(kwargs))

    def detail(self, message: str, **kwargs: Any) -> None:
        """Per-entity detail; DEBUG so a normal run stays one line per step."""
        self._logger.debug(_paint(f"  - {message}", GRAY) + _fields(kwargs))

    def separator(self, title: str) -> None:
        self._logger.info(_paint(f"==== {title} ====", GRAY))

    def stats(self, **kwargs: Any) -> None:
        """Log run counters on one line."""
        self._logger.info(_paint("  " + ", ".join(f"{k}: {v}" for k, v in kwargs.items()), GRAY))

    @contextmanager
    def timed_step(self, stage: WalkStage, message: str, **kwargs: Any):
        """Log start and end of a step with its elapsed time; failures are logged and re-raised."""
        self.step_start(stage, message, **kwargs)
        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.step_error(stage, f"{message} failed after {time.perf_counter() - started:.2f}s", error=e)
            raise
        self.step_complete(stage, f"{message} in {time.perf_counter() - started:.2f}s", **kwargs)
