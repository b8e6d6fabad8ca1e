"""
Centralized logging configuration for the application.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless we are debugging
_QUIET_LOGGERS = ("neo4j", "httpx", "mcp")


def setup_logging(level: Optional[str] = None, verbose: bool = False) -> None:
    """
    Setup centralized logging configuration.

    Logs go to stderr so stdout stays free for command output and the
    MCP stdio transport.

    Args:
        level: Log level name (defaults to INFO)
        verbose: Force DEBUG regardless of ``level``
    """
    level_name = "DEBUG" if verbose else (level or "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
