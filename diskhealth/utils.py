# -----------------------------------------------------------------------------
# Copyright (c) 2025 Disk Health Collector contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

import logging
import re
from typing import Any, Optional

LOG = logging.getLogger(__name__)

GIB = 1024 ** 3

_LEADING_INT = re.compile(r'^\s*(-?\d+)')


def safe_int(value: Any) -> Optional[int]:
    """
    Convert a JSON value to int.

    Returns None for missing, boolean or non-numeric values so callers can tell
    "not reported" apart from a legitimate zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_decimal_string(value: Any) -> Optional[int]:
    """Parse smartctl decimal strings such as ``"12345.678"`` and truncate to int."""
    if value is None:
        return None
    try:
        return int(float(str(value).strip()))
    except ValueError:
        LOG.debug(f"Cannot parse decimal value '{value}'")
        return None


def leading_int(text: Any) -> Optional[int]:
    """Return the integer at the start of a smartctl raw string, e.g. ``"38 (Min/Max 20/45)"``."""
    if text is None:
        return None
    match = _LEADING_INT.match(str(text))
    return int(match.group(1)) if match else None


def bytes_to_gib(num_bytes: Any) -> float:
    """Convert a byte count to GiB, never returning a negative value."""
    value = safe_int(num_bytes)
    if value is None or value <= 0:
        return 0.0
    return value / GIB
