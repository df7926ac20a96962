from __future__ import annotations

from typing import Any, Dict, Optional


class PackerError(Exception):
    """Base exception for all libpacker errors."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            **kwargs: Additional error information
        """
        self.message = message
        details: Dict[str, Any] = dict(kwargs.pop("details", None) or {})
        details.update(kwargs)
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message}"


class ManagerError(PackerError):
    """Base exception for manager-related errors."""

    def __init__(self, message: str, manager_name: Optional[str] = None, **kwargs: Any) -> None:
        """
        Initialize manager error.

        Args:
            message: Error message
            manager_name: Name of the affected manager
            **kwargs: Additional error information
        """
        if manager_name:
            kwargs["manager_name"] = manager_name
        super().__init__(message, **kwargs)
        self.manager_name = manager_name

    def __str__(self) -> str:
        """String representation."""
        if self.manager_name:
            return f"{self.message} (Manager: {self.manager_name})"
        return super().__str__()


class ManagerInitializationError(ManagerError):
    """Exception raised when a manager fails to initialize."""

    pass


class ManagerShutdownError(ManagerError):
    """Exception raised when a manager fails to shut down cleanly."""

    pass


class ConfigurationError(PackerError):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: A descriptive error message.
            config_key: The configuration key that caused the error.
            **kwargs: Additional error information.
        """
        if config_key:
            kwargs["config_key"] = config_key
        super().__init__(message, **kwargs)
        self.config_key = config_key


class BuildError(PackerError):
    """Exception raised when the build orchestration fails."""

    pass


class BuildEngineError(BuildError):
    """Exception raised when the build engine fails to produce a target."""

    def __init__(self, message: str, target: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize a BuildEngineError.

        Args:
            message: A descriptive error message.
            target: Label of the target being built.
            **kwargs: Additional error information.
        """
        if target:
            kwargs["target"] = target
        super().__init__(message, **kwargs)
        self.target = target

    def __str__(self) -> str:
        """String representation."""
        if self.target:
            return f"[{self.target}] {self.message}"
        return super().__str__()


class CopyError(PackerError):
    """Exception raised when copying build essentials fails."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize a CopyError.

        Args:
            message: A descriptive error message.
            path: The path of the file that caused the error.
            **kwargs: Additional error information.
        """
        if path:
            kwargs["path"] = path
        super().__init__(message, **kwargs)
        self.path = path


class TemplateError(CopyError):
    """Exception raised when a template cannot be rendered."""

    pass
