"""
Logging setup shared by every module.

Records emitted while a protocol phase is active carry that phase (see
``log_phase``), so an aborted run can be traced to the step that failed.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from logging import Logger
from typing import Iterator, List, Optional

LOGGER_NAMESPACE = "federated_dfg"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s%(phase_tag)s | %(message)s"

_current_phase: ContextVar[Optional[str]] = ContextVar("federated_dfg_phase", default=None)


class PhaseFilter(logging.Filter):
    """Attach the active protocol phase (or None) to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        phase = getattr(record, "phase", None) or _current_phase.get()
        record.phase = phase
        record.phase_tag = f" [{phase}]" if phase else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        phase = getattr(record, "phase", None)
        if phase:
            entry["phase"] = phase
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


@contextmanager
def log_phase(phase: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``phase``."""
    token = _current_phase.set(phase)
    try:
        yield
    finally:
        _current_phase.reset(token)


def configure_logging(level: Optional[str] = None, json_output: bool = False, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger. Writes to stderr so a DFG printed on stdout
    stays clean; ``log_file`` additionally tees records to a file.

    The level falls back to the LOG_LEVEL environment variable, then INFO.
    """
    effective_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    for handler in handlers:
        handler.addFilter(PhaseFilter())
        handler.setFormatter(formatter)
    logging.basicConfig(level=getattr(logging, effective_level, logging.INFO), handlers=handlers, force=True)


def get_logger(name: str) -> Logger:
    """Logger under the package namespace, e.g. ``get_logger("psi")``."""
    if name == LOGGER_NAMESPACE or name.startswith(LOGGER_NAMESPACE + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
