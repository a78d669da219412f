"""
Base interface for per-shard connection handles.

A handle is configured with a full connection string for one shard but
does not connect until ``open()`` is called. Whoever executes commands
over a multi-shard connection opens the handles; the manager only closes
and disposes them.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionState(str, Enum):
    """Lifecycle state of a shard connection handle."""

    CLOSED = "closed"
    OPEN = "open"


class BaseShardConnection(ABC):
    """
    Abstract base class for shard connection handles.

    Example:
        ```python
        class MssqlShardConnection(BaseShardConnection):
            def open(self) -> None:
                # driver-specific connect
                ...

            def close(self) -> None:
                ...
        ```
    """

    def __init__(self, connection_string: str, options: Optional[Dict[str, Any]] = None):
        """
        Initialize base connection handle.

        Args:
            connection_string: Full connection string for a single shard
            options: Additional driver-specific options
        """
        self.connection_string = connection_string
        self.options = options or {}
        self._state = ConnectionState.CLOSED
        self._disposed = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._disposed

    @abstractmethod
    def open(self) -> None:
        """Connect to the shard."""
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Close the connection to the shard.

        The handle can be opened again afterwards.
        """
        pass

    def dispose(self) -> None:
        """
        Close the handle and release it for good.

        Idempotent. A disposed handle cannot be opened again.
        """
        if self._disposed:
            return
        try:
            if self._state != ConnectionState.CLOSED:
                self.close()
        finally:
            self._disposed = True

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
