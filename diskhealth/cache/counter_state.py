import logging
import threading
from typing import Dict, Optional, Tuple

CounterKey = Tuple[str, ...]


class CounterState:
    """
    Previously observed cumulative readings, per device and counter.

    Turns raw device counters (power-on hours, error counts) into increments for
    monotonic Prometheus counters. Entries are created on first observation and
    never expire; a device that disappears simply stops updating its entries.
    """

    def __init__(self):
        self._previous: Dict[CounterKey, int] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def increment(self, key: CounterKey, current: Optional[int]) -> int:
        """
        Record a new reading and return the amount to add to the exported counter.

        Args:
            key: Identity of the counter, e.g. ``(device, 'power_on_hours')``
            current: Raw cumulative reading from the device

        Returns:
            ``current - previous`` when the reading grew, the full ``current`` on the
            first observation or when the device counter went backwards (treated as
            a reset), and 0 for a missing or negative reading
        """
        if current is None:
            return 0
        if current < 0:
            self.logger.warning(f"Ignoring negative counter reading {current} for {'/'.join(key)}")
            return 0

        with self._lock:
            previous = self._previous.get(key)
            self._previous[key] = current

        if previous is None:
            return current
        if current < previous:
            # cannot tell a real reset from a misread; re-base on the new reading
            self.logger.warning(f"Counter {'/'.join(key)} went backwards ({previous} -> {current}), "
                                f"treating as reset")
            return current
        return current - previous

    def get(self, key: CounterKey) -> Optional[int]:
        with self._lock:
            return self._previous.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._previous)
