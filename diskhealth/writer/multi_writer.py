"""
Writer that fans out to several writers.
"""

import logging
from typing import Any, Dict, List

from diskhealth.writer.base import Writer

LOG = logging.getLogger(__name__)


class MultiWriter(Writer):
    """
    Sends every cycle to each wrapped writer.

    One writer failing does not stop the others; write() reports success only
    when all of them succeeded.
    """

    def __init__(self, writers: List[Writer]):
        self.writers = list(writers)

    def start(self) -> None:
        for writer in self.writers:
            writer.start()

    def write(self, data: Dict[str, Any], loop_iteration: int = 1) -> bool:
        results = []
        for writer in self.writers:
            try:
                results.append(writer.write(data, loop_iteration))
            except Exception as e:
                LOG.error(f"{type(writer).__name__} failed: {e}", exc_info=True)
                results.append(False)
        return all(results)

    def close(self, timeout_seconds: int = 90, force_exit_on_timeout: bool = False) -> None:
        for writer in self.writers:
            try:
                writer.close(timeout_seconds, force_exit_on_timeout)
            except Exception as e:
                LOG.warning(f"Error closing {type(writer).__name__}: {e}")
