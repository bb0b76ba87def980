# -----------------------------------------------------------------------------
# Copyright (c) 2025 Disk Health Collector contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Data model for the disk health collector.

Raw records come from smartctl / nvme-cli (or fixture replay), are normalized into
DeviceInfo plus a canonical attribute set, joined into a NormalizedRecord and finally
classified into an AlertEvent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Protocol(Enum):
    """Device protocols reported by smartctl"""
    ATA = "ATA"
    SCSI = "SCSI"
    NVME = "NVMe"

    @staticmethod
    def from_smartctl(payload: Dict[str, Any]) -> Optional['Protocol']:
        """Read the protocol tag from the ``device`` block of smartctl JSON output."""
        name = str((payload.get('device') or {}).get('protocol', '')).strip().lower()
        for protocol in Protocol:
            if protocol.value.lower() == name:
                return protocol
        return None


@dataclass(frozen=True)
class RawDeviceRecord:
    """One poll of one device. Read by the normalizer, never modified."""
    protocol: Protocol
    device: str
    info_name: str
    payload: Dict[str, Any]
    nvme_controller: Optional[Dict[str, Any]] = None
    nvme_error_log: Optional[Dict[str, Any]] = None


@dataclass
class DeviceInfo:
    vendor: str = ""
    product: str = ""
    model: str = ""
    model_family: str = ""
    serial_number: str = ""
    firmware_version: str = ""
    lun_id: str = ""
    capacity_gb: float = 0.0
    form_factor: str = ""
    media: str = "unknown"
    rpm: int = 0
    dwpd: float = 0.0
    health: Optional[bool] = None
    vendor_id: str = ""
    subsystem_vendor_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class CanonicalAttribute:
    """
    A canonical SMART attribute.

    None means the field was not reported by the device. An attribute with all four
    numeric fields unset is removed during normalization.
    """
    description: str
    unit: str
    threshold: Optional[int] = None
    value: Optional[int] = None
    worst: Optional[int] = None
    raw_value: Optional[int] = None

    def is_unset(self) -> bool:
        return (self.threshold is None and self.value is None
                and self.worst is None and self.raw_value is None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'unit': self.unit,
            'threshold': self.threshold,
            'value': self.value,
            'worst': self.worst,
            'raw_value': self.raw_value,
        }


@dataclass
class NormalizedRecord:
    """Per-device, per-cycle unit of publication."""
    node_name: str
    instance_id: str
    device: str
    device_info: DeviceInfo
    capacity_gb: float = 0.0
    health_status: Optional[bool] = None
    temperature_celsius: Optional[int] = None
    reallocated_sectors: Optional[int] = None
    pending_sectors: Optional[int] = None
    power_on_hours: Optional[int] = None
    ssd_life_used: Optional[int] = None
    grown_defects: Optional[int] = None
    error_counts: Dict[str, int] = field(default_factory=dict)
    attributes: Dict[Any, CanonicalAttribute] = field(default_factory=dict)
    storage_unit_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'node_name': self.node_name,
            'instance_id': self.instance_id,
            'device': self.device,
            'device_info': self.device_info.to_dict(),
            'capacity_gb': self.capacity_gb,
            'health_status': self.health_status,
            'temperature_celsius': self.temperature_celsius,
            'reallocated_sectors': self.reallocated_sectors,
            'pending_sectors': self.pending_sectors,
            'power_on_hours': self.power_on_hours,
            'ssd_life_used': self.ssd_life_used,
            'grown_defects': self.grown_defects,
            'error_counts': dict(self.error_counts),
            'attributes': {_key_name(k): v.to_dict() for k, v in self.attributes.items()},
            'storage_unit_id': self.storage_unit_id,
        }


@dataclass
class AlertEvent:
    """Event published on the message bus for every record."""
    node_name: str
    instance_id: str
    device: str
    event_type: str
    severity: str
    message: str
    details: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'node_name': self.node_name,
            'instance_id': self.instance_id,
            'device': self.device,
            'event_type': self.event_type,
            'severity': self.severity,
            'message': self.message,
            'details': dict(self.details),
        }


def _key_name(key: Any) -> str:
    # AttributeKey members serialize by value
    return key.value if isinstance(key, Enum) else str(key)
