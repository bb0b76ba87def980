"""
Threshold and alert classification.

Compares the derived scalars of a NormalizedRecord against the configured thresholds
and produces the AlertEvent published on the message bus.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from diskhealth.models import AlertEvent, NormalizedRecord

logger = logging.getLogger(__name__)

SEVERITY_RANK = {'info': 0, 'warning': 1, 'critical': 2}

EXCEEDS_MARKER = "Exceeds threshold"

# Checked in order; the first key whose detail carries the marker names the message
ALERT_MESSAGES = (
    ('SSDLifeUsed', "SMART data indicates SSD nearing end of life."),
    ('GrownDefects', "SMART data indicates potential drive issues (grown defects)."),
    ('PendingSectors', "SMART data indicates potential drive issues (pending sectors)."),
    ('ReallocatedSectors', "SMART data indicates potential drive issues (reallocated sectors)."),
)
DEFAULT_MESSAGE = "SMART data collected successfully."


@dataclass(frozen=True)
class Thresholds:
    grown_defects: int = 10
    pending_sectors: int = 3
    reallocated_sectors: int = 10
    lifetime_used: int = 80


class AlertClassifier:
    """
    Derives severity, event type and message for a record.

    Checks run in a fixed order (grown defects, pending sectors, reallocated sectors,
    wear used). A later check may raise the severity but never lowers it.
    """

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def classify(self, record: NormalizedRecord) -> AlertEvent:
        details = build_details(record)
        severity = 'info'
        event_type = 'health'

        checks = (
            ('GrownDefects', record.grown_defects, self.thresholds.grown_defects, 'warning', 'health_alert', False),
            ('PendingSectors', record.pending_sectors, self.thresholds.pending_sectors, 'warning', 'health_alert', False),
            ('ReallocatedSectors', record.reallocated_sectors, self.thresholds.reallocated_sectors,
             'warning', 'health_alert', False),
            ('SSDLifeUsed', record.ssd_life_used, self.thresholds.lifetime_used, 'critical', 'lifetime_alert', True),
        )
        for key, value, threshold, check_severity, check_event_type, percent in checks:
            if value is None or value <= threshold:
                continue
            if percent:
                details[key] = f"{value}% (Warning: {EXCEEDS_MARKER} of {threshold}%)"
            else:
                details[key] = f"{value} (Warning: {EXCEEDS_MARKER} of {threshold})"
            if SEVERITY_RANK[check_severity] >= SEVERITY_RANK[severity]:
                severity = check_severity
                event_type = check_event_type

        if severity != 'info':
            logger.warning(f"Device {record.device} classified {severity}/{event_type}")

        return AlertEvent(
            node_name=record.node_name,
            instance_id=record.instance_id,
            device=record.device,
            event_type=event_type,
            severity=severity,
            message=alert_message(details),
            details=details,
        )


def build_details(record: NormalizedRecord) -> Dict[str, str]:
    """String rendering of the record scalars followed by every attribute raw value."""
    details: Dict[str, str] = {}
    if record.ssd_life_used is not None:
        details['SSDWearPercentage'] = str(record.ssd_life_used)
    scalars = (
        ('TemperatureCelsius', record.temperature_celsius),
        ('ReallocatedSectors', record.reallocated_sectors),
        ('PendingSectors', record.pending_sectors),
        ('PowerOnHours', record.power_on_hours),
        ('SSDLifeUsed', record.ssd_life_used),
        ('GrownDefects', record.grown_defects),
    )
    for name, value in scalars:
        if value is not None:
            details[name] = str(value)
    if record.storage_unit_id:
        details['StorageUnitId'] = record.storage_unit_id

    for key, attr in record.attributes.items():
        if attr.raw_value is not None:
            details[key.value] = str(attr.raw_value)
    return details


def alert_message(details: Dict[str, str]) -> str:
    """Message for the most severe breached condition found in the details."""
    for key, message in ALERT_MESSAGES:
        if EXCEEDS_MARKER in details.get(key, ""):
            return message
    return DEFAULT_MESSAGE
