"""Configuration, logging and audit trail."""

from aboutyou.core.config import AppConfig, load_config
from aboutyou.core.logging_config import setup_logging
from aboutyou.core.observability import ObservabilityLogger, LogEntry

__all__ = [
    # Config
    "AppConfig",
    "load_config",
    # Logging
    "setup_logging",
    # Observability
    "ObservabilityLogger",
    "LogEntry",
]
