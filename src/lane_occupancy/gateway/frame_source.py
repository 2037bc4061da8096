"""
Frame Source - Interface for camera frame delivery.

This module defines the abstract interface the processing loop consumes,
independent of the transport that actually carries frames.
"""

from abc import ABC, abstractmethod
from .data_types import Frame


class FrameSourceError(RuntimeError):
    """Transport or decode failure while receiving a frame."""


class IFrameSource(ABC):
    """Abstract interface for a best-effort, latest-only frame source."""

    @abstractmethod
    def receive(self, timeout: float) -> Frame:
        """
        Block until the next frame arrives.

        Args:
            timeout: Maximum wait in seconds

        Returns:
            The most recent frame available

        Raises:
            TimeoutError: No frame arrived within timeout
            FrameSourceError: Transport failure or malformed message
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release transport resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
