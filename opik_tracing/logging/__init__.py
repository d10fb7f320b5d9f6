"""Logging infrastructure for the Opik tracing client.

Example:
    >>> from opik_tracing.logging import get_tracing_logger
    >>>
    >>> logger = get_tracing_logger(__name__)
    >>> logger.info("Client created")

Note:
    Use get_tracing_logger() rather than logging.getLogger() so that the
    package's default configuration is applied.
"""

from .logging_config import LoggingConfig, get_tracing_logger, setup_logging

__all__ = [
    "LoggingConfig",
    "setup_logging",
    "get_tracing_logger",
]
