"""
Base writer interface for the disk health collector.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

LOG = logging.getLogger(__name__)


class Writer(ABC):
    """
    Base class for all writers.

    ``data`` handed to :meth:`write` holds one cycle of output:
    ``{"records": [NormalizedRecord, ...], "events": [AlertEvent, ...]}``.
    """

    @abstractmethod
    def write(self, data: Dict[str, Any], loop_iteration: int = 1) -> bool:
        """
        Write one cycle of data to the destination.

        Args:
            data: Dictionary with ``records`` and ``events`` lists
            loop_iteration: Current iteration number

        Returns:
            True if write was successful, False otherwise
        """
        pass

    def start(self) -> None:
        """
        Optional startup hook called once before the monitoring loop.
        Failures raised here are fatal for the process.
        """
        pass

    def close(self, timeout_seconds: int = 90, force_exit_on_timeout: bool = False) -> None:
        """
        Optional method to close the writer and clean up resources.
        Default implementation does nothing - override in subclasses that need cleanup.

        Args:
            timeout_seconds: Timeout for cleanup operations
            force_exit_on_timeout: Whether to force exit on timeout
        """
        pass
