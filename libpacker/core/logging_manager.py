from __future__ import annotations

import logging
import logging.handlers
import os
import pathlib
import sys
from typing import Any, Dict, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from libpacker.build.config import LoggingConfig
from libpacker.core.base import PackerManager
from libpacker.utils.exceptions import ManagerInitializationError, ManagerShutdownError


class LoggingManager(PackerManager):
    """Manages logging configuration and access.

    The Logging Manager configures Python's logging module with console and
    file handlers based on the project configuration, and configures
    structlog on top of it so build components emit structured events.
    """

    # Mapping from string log levels to logging module constants
    LOG_LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    def __init__(self, config_manager: Any, level_override: Optional[str] = None) -> None:
        """Initialize the Logging Manager.

        Args:
            config_manager: The Configuration Manager to use for logging settings.
            level_override: Log level taking precedence over the configuration.
        """
        super().__init__(name="logging_manager")
        self._config_manager = config_manager
        self._level_override = level_override
        self._root_logger: Optional[logging.Logger] = None
        self._file_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None
        self._log_directory: Optional[pathlib.Path] = None
        self._json_format = False
        self._handlers: List[logging.Handler] = []

    def _level(self, name: Optional[str]) -> int:
        return self.LOG_LEVELS.get((name or "info").lower(), logging.INFO)

    async def initialize(self) -> None:
        """Initialize the Logging Manager.

        Raises:
            ManagerInitializationError: If initialization fails.
        """
        try:
            logging_config: LoggingConfig = self._config_manager.config.logging
            log_level = self._level(self._level_override or logging_config.level)
            self._json_format = logging_config.format == "json"

            # Reset the root logger
            self._root_logger = logging.getLogger()
            self._root_logger.setLevel(log_level)
            for handler in list(self._root_logger.handlers):
                self._root_logger.removeHandler(handler)

            if self._json_format:
                formatter = self._create_json_formatter()
            else:
                formatter = logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                )

            if logging_config.console.enabled:
                console_level = self._level(self._level_override or logging_config.console.level)
                self._console_handler = logging.StreamHandler(sys.stdout)
                self._console_handler.setLevel(console_level)
                self._console_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._console_handler)
                self._handlers.append(self._console_handler)

            if logging_config.file.enabled:
                file_path = pathlib.Path(logging_config.file.path)
                if not file_path.is_absolute():
                    file_path = self._config_manager.project_dir / file_path
                self._log_directory = file_path.parent
                os.makedirs(self._log_directory, exist_ok=True)

                self._file_handler = logging.handlers.RotatingFileHandler(
                    file_path,
                    maxBytes=10 * 1024 * 1024,
                    backupCount=5,
                )
                self._file_handler.setLevel(log_level)
                self._file_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._file_handler)
                self._handlers.append(self._file_handler)

            self._configure_structlog()

            self._initialized = True
            self._healthy = True
            self._root_logger.debug("Logging Manager initialized")

        except Exception as e:
            raise ManagerInitializationError(
                f"Failed to initialize LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e

    def _create_json_formatter(self) -> logging.Formatter:
        """Create a JSON formatter for log records."""
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            json_ensure_ascii=False,
        )

    def _configure_structlog(self) -> None:
        """Configure structlog to render through the stdlib handlers."""
        if self._json_format:
            # Event fields become JSON keys
            renderer: Any = structlog.stdlib.render_to_log_kwargs
        else:
            renderer = structlog.processors.KeyValueRenderer(
                key_order=["event"], drop_missing=True
            )

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                renderer,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

    def get_logger(self, name: str) -> Any:
        """Get a structured logger for a component.

        Args:
            name: The name of the component requesting a logger.
        """
        return structlog.get_logger(name)

    async def shutdown(self) -> None:
        """Shut down the Logging Manager.

        Raises:
            ManagerShutdownError: If shutdown fails.
        """
        if not self._initialized:
            return

        try:
            for handler in self._handlers:
                if self._root_logger:
                    self._root_logger.removeHandler(handler)
                handler.flush()
                handler.close()
            self._handlers.clear()

            self._initialized = False
            self._healthy = False

        except Exception as e:
            raise ManagerShutdownError(
                f"Failed to shut down LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e

    def status(self) -> Dict[str, Any]:
        """Get the status of the Logging Manager."""
        status = super().status()
        if self._initialized:
            status.update(
                {
                    "log_directory": str(self._log_directory) if self._log_directory else None,
                    "handlers": {
                        "console": self._console_handler is not None,
                        "file": self._file_handler is not None,
                    },
                    "json_format": self._json_format,
                }
            )
        return status
