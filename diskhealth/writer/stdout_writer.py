"""
Standard output writer for the disk health collector.

Used when neither Prometheus nor NATS is configured: prints one JSON array of
NormalizedRecords per cycle, one line per cycle.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from diskhealth.writer.base import Writer

LOG = logging.getLogger(__name__)


class StdoutWriter(Writer):
    """Writer that prints newline-delimited JSON to a stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout

    def write(self, data: Dict[str, Any], loop_iteration: int = 1) -> bool:
        records = data.get('records') or []
        try:
            line = json.dumps([record.to_dict() for record in records])
        except (TypeError, ValueError) as e:
            LOG.error(f"Failed to serialize records for iteration {loop_iteration}: {e}")
            return False
        self.stream.write(line + "\n")
        self.stream.flush()
        return True
