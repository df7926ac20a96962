"""Utility functions and classes for libpacker."""

from libpacker.utils.exceptions import (
    BuildEngineError,
    BuildError,
    ConfigurationError,
    CopyError,
    ManagerError,
    ManagerInitializationError,
    ManagerShutdownError,
    PackerError,
    TemplateError,
)
