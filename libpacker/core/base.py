from __future__ import annotations
import abc
from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class BaseManager(Protocol):
    """Protocol defining basic async manager functionality."""

    async def initialize(self) -> None:
        """Initialize the manager asynchronously."""
        ...

    async def shutdown(self) -> None:
        """Shutdown the manager asynchronously."""
        ...

    def status(self) -> Dict[str, Any]:
        """Return the current status of the manager."""
        ...


class PackerManager(abc.ABC):
    """Base class for asynchronous managers in libpacker."""

    def __init__(self, name: str) -> None:
        """Initialize the async manager with a name.

        Args:
            name: The name of the manager
        """
        self._name: str = name
        self._initialized: bool = False
        self._healthy: bool = False

    @abc.abstractmethod
    async def initialize(self) -> None:
        """Initialize the manager asynchronously.

        Raises:
            ManagerInitializationError: If initialization fails
        """
        pass

    @abc.abstractmethod
    async def shutdown(self) -> None:
        """Shutdown the manager asynchronously.

        Raises:
            ManagerShutdownError: If shutdown fails
        """
        pass

    def status(self) -> Dict[str, Any]:
        """Get the current status of the manager.

        Returns:
            Dictionary containing status information
        """
        return {
            'name': self._name,
            'initialized': self._initialized,
            'healthy': self._healthy
        }

    @property
    def name(self) -> str:
        """Get the manager's name."""
        return self._name

    @property
    def initialized(self) -> bool:
        """Check if the manager is initialized."""
        return self._initialized

    @property
    def healthy(self) -> bool:
        """Check if the manager is healthy."""
        return self._healthy
