from .logging import JsonFormatter, PhaseFilter, configure_logging, get_logger, log_phase
from .metrics import InMemoryMetrics, MetricPoint, Timer
from .retry import RetryError, retry

__all__ = [
    "configure_logging",
    "get_logger",
    "log_phase",
    "JsonFormatter",
    "PhaseFilter",
    "InMemoryMetrics",
    "MetricPoint",
    "Timer",
    "RetryError",
    "retry",
]
