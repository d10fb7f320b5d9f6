"""Logging configuration for the Opik tracing client.

Client loggers come from Prefect's logger factory, so every name is placed
under ``prefect.opik_tracing``. Only that subtree is configured here: the
host application's root logger, its handlers and its level are left alone.

Usage:
    >>> from opik_tracing.logging import get_tracing_logger
    >>> logger = get_tracing_logger(__name__)
    >>> logger.info("Delivery started")

Environment variables:
    OPIK_TRACING_LOGGING_CONFIG: Path to a YAML file in dictConfig format
    OPIK_TRACING_LOG_LEVEL: Level for the client loggers (default INFO)
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import yaml
from prefect.logging import get_logger

PACKAGE_LOGGER = "prefect.opik_tracing"
DEFAULT_LEVEL = "INFO"

_CONSOLE_HANDLER = "opik_tracing.console"


class LoggingConfig:
    """Resolves and applies logging configuration for the client loggers.

    The config file comes from ``config_path`` or ``OPIK_TRACING_LOGGING_CONFIG``.
    Without one, a built-in configuration gives the package logger its own
    stderr handler and stops propagation, so client records are printed once
    and nothing above the package logger is touched.
    """

    def __init__(self, config_path: Path | None = None, level: str | None = None):
        if config_path is None and (env_path := os.environ.get("OPIK_TRACING_LOGGING_CONFIG")):
            config_path = Path(env_path)
        self.config_path = config_path
        self.level = (level or os.environ.get("OPIK_TRACING_LOG_LEVEL") or DEFAULT_LEVEL).upper()
        self._config: dict[str, Any] | None = None

    def load_config(self) -> dict[str, Any]:
        """Return the dictConfig mapping, reading the YAML file on first call.

        A missing file falls back to the built-in configuration.
        """
        if self._config is None:
            if self.config_path and self.config_path.exists():
                with open(self.config_path) as f:
                    self._config = yaml.safe_load(f) or {"version": 1}
            else:
                self._config = self.package_config(self.level)
        return self._config

    @staticmethod
    def package_config(level: str) -> dict[str, Any]:
        """Configuration that covers the ``prefect.opik_tracing`` subtree only."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "opik_tracing": {
                    "format": "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s",
                    "datefmt": "%H:%M:%S",
                },
            },
            "handlers": {
                _CONSOLE_HANDLER: {
                    "class": "logging.StreamHandler",
                    "formatter": "opik_tracing",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                PACKAGE_LOGGER: {
                    "level": level,
                    "handlers": [_CONSOLE_HANDLER],
                    "propagate": False,
                },
            },
        }

    def apply(self) -> None:
        """Apply the configuration without disabling loggers it does not name."""
        config = dict(self.load_config())
        config.setdefault("disable_existing_loggers", False)
        logging.config.dictConfig(config)


_logging_config: LoggingConfig | None = None


def setup_logging(config_path: Path | None = None, level: str | None = None) -> None:
    """Configure the client loggers.

    Args:
        config_path: Optional YAML file in dictConfig format.
        level: Level for the package logger, overriding the file and the
            environment. Child loggers inherit it.

    Example:
        >>> setup_logging(level="DEBUG")
    """
    global _logging_config

    _logging_config = LoggingConfig(config_path, level)
    _logging_config.apply()

    if level:
        logging.getLogger(PACKAGE_LOGGER).setLevel(level.upper())


def get_tracing_logger(name: str) -> logging.Logger:
    """Return the Prefect logger for ``name``, configuring logging on first use.

    Records emitted inside a Prefect flow also reach the flow run logs.
    """
    if _logging_config is None:
        setup_logging()

    return get_logger(name)
