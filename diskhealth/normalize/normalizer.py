"""
Attribute normalizer.

Maps the protocol specific sections of smartctl JSON output (ATA attribute table,
SCSI log pages, NVMe health information log) and the optional nvme-cli identity
and error log into the canonical attribute set, then joins the result with the
device descriptor into a NormalizedRecord.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from diskhealth.models import CanonicalAttribute, DeviceInfo, NormalizedRecord, Protocol, RawDeviceRecord
from diskhealth.normalize.attributes import (
    AttributeKey,
    TEMPERATURE_KEYS,
    WEAR_REMAINING_KEYS,
    WEAR_USED_PRIORITY,
    cleanup_attributes,
    new_attribute_set,
    resolve_attribute_name,
)
from diskhealth.normalize.device_info import enhance_device_info, fill_device_info, normalize_device_info
from diskhealth.utils import leading_int, parse_decimal_string, safe_int

logger = logging.getLogger(__name__)

K = AttributeKey
AttributeSet = Dict[AttributeKey, CanonicalAttribute]

# NVMe status codes (status field & 0x7FF)
NVME_STATUS_MEDIA_ERROR = 0x281
NVME_STATUS_UNRECOVERED_READ = 0x282
NVME_STATUS_ABORTED = 0x7
NVME_STATUS_TIMEOUT = 0x4

# Canonical keys feeding the per-error-type counter, per protocol
ERROR_COUNT_KEYS = {
    Protocol.ATA: (K.UDMA_CRC_ERROR_COUNT, K.REPORTED_UNCORRECT, K.COMMAND_TIMEOUT, K.END_TO_END_ERROR),
    Protocol.SCSI: (K.TOTAL_UNCORRECTED_READ_ERRORS, K.TOTAL_UNCORRECTED_WRITE_ERRORS,
                    K.TOTAL_UNCORRECTED_VERIFY_ERRORS),
    Protocol.NVME: (K.MEDIA_AND_DATA_INTEGRITY_ERRORS, K.ERROR_INFORMATION_LOG_ENTRIES,
                    K.NVME_MEDIA_ERRORS, K.NVME_ABORTED_COMMANDS, K.NVME_TIMEOUT_ERRORS,
                    K.NVME_FABRIC_WARNINGS, K.NVME_SPARSE_ERRORS, K.NVME_CHANGE_NOTIFICATIONS),
}


class AttributeNormalizer:
    """
    Turns RawDeviceRecords into DeviceInfo plus a canonical attribute set.

    The normalizer keeps no state between calls; one instance is shared by the
    monitoring loop for all devices.
    """

    def normalize(self, raw: RawDeviceRecord) -> Tuple[DeviceInfo, AttributeSet]:
        """
        Normalize one raw device record.

        Args:
            raw: Record returned by the command adapter

        Returns:
            Tuple of (DeviceInfo, attribute set). The attribute set only holds
            attributes the device actually reported.
        """
        attributes = new_attribute_set()

        if raw.protocol == Protocol.ATA:
            self._process_ata(attributes, raw.payload)
        elif raw.protocol == Protocol.SCSI:
            self._process_scsi(attributes, raw.payload)
        elif raw.protocol == Protocol.NVME:
            self._process_nvme(attributes, raw.payload, raw.nvme_error_log)
            self._process_nvme_cli(attributes, raw.nvme_controller, raw.nvme_error_log)
        else:
            logger.warning(f"Unsupported protocol for device {raw.device}")

        info = fill_device_info(raw)
        info = enhance_device_info(normalize_device_info(info))

        cleanup_attributes(attributes)
        logger.debug(f"Normalized {len(attributes)} attributes for {raw.device} ({raw.protocol.value})")
        return info, attributes

    def build_record(self, raw: RawDeviceRecord, node_name: str, instance_id: str,
                     storage_unit_id: str = "") -> NormalizedRecord:
        """Normalize a raw record and join it with derived scalars into a NormalizedRecord."""
        info, attributes = self.normalize(raw)

        return NormalizedRecord(
            node_name=node_name,
            instance_id=instance_id,
            device=raw.device,
            device_info=info,
            capacity_gb=info.capacity_gb,
            health_status=info.health,
            temperature_celsius=_raw_of(attributes, K.TEMPERATURE_CELSIUS),
            reallocated_sectors=_raw_of(attributes, K.REALLOCATED_SECTOR_CT),
            pending_sectors=_raw_of(attributes, K.CURRENT_PENDING_SECTOR),
            power_on_hours=_raw_of(attributes, K.POWER_ON_HOURS),
            ssd_life_used=wear_used_percentage(attributes),
            grown_defects=_raw_of(attributes, K.GROWN_DEFECTS_COUNT),
            error_counts=error_counts(raw.protocol, attributes),
            attributes=attributes,
            storage_unit_id=storage_unit_id,
        )

    def _process_ata(self, attributes: AttributeSet, payload: Dict[str, Any]) -> None:
        table = (payload.get('ata_smart_attributes') or {}).get('table') or []
        for entry in table:
            name = str(entry.get('name', ''))
            key = resolve_attribute_name(name)
            if key is None or key not in attributes:
                logger.warning(f"Unrecognized ATA SMART attribute: {name.lower()}")
                continue

            attr = attributes[key]
            raw = entry.get('raw') or {}
            reading = safe_int(entry.get('value'))

            if key in WEAR_REMAINING_KEYS:
                # normalized column counts remaining life down from 100
                attr.value = 100 - reading if reading is not None else None
            else:
                attr.value = reading
            attr.worst = safe_int(entry.get('worst'))
            attr.threshold = safe_int(entry.get('thresh'))

            if key in TEMPERATURE_KEYS:
                # raw value packs min/max into the high bytes, the string starts with the current reading
                attr.raw_value = leading_int(raw.get('string'))
                if attr.raw_value is None:
                    attr.raw_value = safe_int(raw.get('value'))
            else:
                attr.raw_value = safe_int(raw.get('value'))

        if attributes[K.TEMPERATURE_CELSIUS].raw_value is None:
            current = safe_int((payload.get('temperature') or {}).get('current'))
            if current is not None and current > 0:
                _update(attributes, K.TEMPERATURE_CELSIUS, current, unit="Celsius")

    def _process_scsi(self, attributes: AttributeSet, payload: Dict[str, Any]) -> None:
        hours = safe_int((payload.get('power_on_time') or {}).get('hours'))
        if hours is not None:
            _update(attributes, K.POWER_ON_HOURS, hours, unit="hours")

        temperature = safe_int((payload.get('temperature') or {}).get('current'))
        if temperature is not None and temperature > 0:
            _update(attributes, K.TEMPERATURE_CELSIUS, temperature, unit="Celsius")
        elif temperature is not None:
            logger.warning(f"Unexpected temperature value: {temperature} for SCSI device")

        start_stop = payload.get('scsi_start_stop_cycle_counter')
        if start_stop:
            cycles = safe_int(start_stop.get('accumulated_start_stop_cycles'))
            if cycles is not None:
                _update(attributes, K.POWER_CYCLE_COUNT, cycles, unit="count")

        if 'scsi_grown_defect_list' in payload:
            grown = safe_int(payload.get('scsi_grown_defect_list'))
            if grown is not None and grown >= 0:
                _update(attributes, K.GROWN_DEFECTS_COUNT, grown, unit="count")
            else:
                logger.warning(f"Invalid grown defects count: {grown} for SCSI device")

        error_log = payload.get('scsi_error_counter_log')
        if error_log:
            self._process_scsi_error_log(attributes, error_log)

    def _process_scsi_error_log(self, attributes: AttributeSet, error_log: Dict[str, Any]) -> None:
        per_operation = (
            ('read', K.READ_ERRORS_CORRECTED, K.TOTAL_UNCORRECTED_READ_ERRORS, K.READ_GIGABYTES_PROCESSED),
            ('write', K.WRITE_ERRORS_CORRECTED, K.TOTAL_UNCORRECTED_WRITE_ERRORS, K.WRITE_GIGABYTES_PROCESSED),
            ('verify', K.VERIFY_ERRORS_CORRECTED, K.TOTAL_UNCORRECTED_VERIFY_ERRORS, None),
        )
        for operation, corrected_key, uncorrected_key, processed_key in per_operation:
            counters = error_log.get(operation)
            if not counters:
                continue
            corrected = safe_int(counters.get('total_errors_corrected'))
            if corrected is not None:
                _update(attributes, corrected_key, corrected, unit="count")
            uncorrected = safe_int(counters.get('total_uncorrected_errors'))
            if uncorrected is not None:
                _update(attributes, uncorrected_key, uncorrected, unit="count")
            if processed_key is not None:
                processed = parse_decimal_string(counters.get('gigabytes_processed'))
                if processed is not None:
                    _update(attributes, processed_key, processed, unit="GB")

    def _process_nvme(self, attributes: AttributeSet, payload: Dict[str, Any],
                      error_log: Optional[Dict[str, Any]]) -> None:
        health = payload.get('nvme_smart_health_information_log')
        if not health:
            return

        media_errors = safe_int(health.get('media_errors'))
        log_entries = safe_int(health.get('num_err_log_entries'))
        errors = (error_log or {}).get('errors') or []
        if errors:
            # nvme-cli error log replaces the health log error counters
            media_errors = sum(safe_int(e.get('error_count')) or 0 for e in errors
                               if (safe_int(e.get('error_count')) or 0) > 0
                               and (safe_int(e.get('status_field')) or 0) & 0x7FF == NVME_STATUS_MEDIA_ERROR)
            log_entries = len(errors)

        simple_fields = (
            ('power_on_hours', K.POWER_ON_HOURS, "hours"),
            ('power_cycles', K.POWER_CYCLE_COUNT, "count"),
            ('unsafe_shutdowns', K.UNSAFE_SHUTDOWNS, "count"),
            ('host_reads', K.HOST_READ_COMMANDS, "commands"),
            ('host_writes', K.HOST_WRITE_COMMANDS, "commands"),
            ('controller_busy_time', K.CONTROLLER_BUSY_TIME, "minutes"),
            ('available_spare', K.AVAILABLE_SPARE, "percent"),
            ('available_spare_threshold', K.AVAILABLE_SPARE_THRESHOLD, "percent"),
        )
        for field_name, key, unit in simple_fields:
            value = safe_int(health.get(field_name))
            if value is not None:
                _update(attributes, key, value, unit=unit)

        temperature = safe_int(health.get('temperature'))
        if temperature is not None and temperature > 0:
            _update(attributes, K.TEMPERATURE_CELSIUS, temperature, unit="Celsius")
        elif temperature is not None:
            logger.warning(f"Unexpected temperature value: {temperature} for NVMe device")

        if log_entries is not None:
            _update(attributes, K.ERROR_INFORMATION_LOG_ENTRIES, log_entries, unit="count")

        percentage_used = safe_int(health.get('percentage_used'))
        if percentage_used is not None and 0 <= percentage_used <= 100:
            _update(attributes, K.PERCENTAGE_USED, percentage_used, unit="percent")
        else:
            logger.warning(f"Unexpected percentage used value: {percentage_used} for NVMe device")

        if media_errors is not None:
            _update(attributes, K.MEDIA_AND_DATA_INTEGRITY_ERRORS, media_errors, unit="count")

    def _process_nvme_cli(self, attributes: AttributeSet, controller: Optional[Dict[str, Any]],
                          error_log: Optional[Dict[str, Any]]) -> None:
        if controller:
            subnqn = str(controller.get('subnqn') or '')
            if subnqn:
                logger.debug(f"Processing NVMe subsystem NQN {subnqn}")
                _update(attributes, K.NVME_SUBSYSTEM_NQN, len(subnqn), unit="chars")

            oui = _parse_ieee(controller.get('ieee'))
            if oui is not None:
                _update(attributes, K.NVME_IEEE_OUI, oui, unit="hex")

            vendor_id = safe_int(controller.get('vid'))
            if vendor_id and vendor_id > 0:
                _update(attributes, K.NVME_VENDOR_ID, vendor_id, unit="id")

            subsystem_vendor_id = safe_int(controller.get('ssvid'))
            if subsystem_vendor_id and subsystem_vendor_id > 0:
                _update(attributes, K.NVME_SUBSYSTEM_VENDOR_ID, subsystem_vendor_id, unit="id")

        if error_log is None:
            return

        errors = error_log.get('errors') or []
        _update(attributes, K.NVME_ERROR_LOG_ENTRIES, len(errors), unit="count")

        counts = classify_nvme_errors(errors)
        for key, count in counts.items():
            if count > 0:
                _update(attributes, key, count, unit="count")
        logger.debug(f"NVMe error classification complete: "
                     f"{', '.join(f'{k.value}={v}' for k, v in counts.items())}")


def classify_nvme_errors(errors) -> Dict[AttributeKey, int]:
    """
    Classify nvme-cli error-log entries by status code and transport fields.

    Only entries with a positive error_count are considered; each contributes its
    error_count to every class it matches.
    """
    counts = {
        K.NVME_MEDIA_ERRORS: 0,
        K.NVME_ABORTED_COMMANDS: 0,
        K.NVME_TIMEOUT_ERRORS: 0,
        K.NVME_FABRIC_WARNINGS: 0,
        K.NVME_SPARSE_ERRORS: 0,
        K.NVME_CHANGE_NOTIFICATIONS: 0,
    }
    for entry in errors:
        error_count = safe_int(entry.get('error_count')) or 0
        if error_count <= 0:
            continue
        status = (safe_int(entry.get('status_field')) or 0) & 0x7FF

        if status == NVME_STATUS_MEDIA_ERROR:
            counts[K.NVME_MEDIA_ERRORS] += error_count
        elif status == NVME_STATUS_ABORTED:
            counts[K.NVME_ABORTED_COMMANDS] += error_count
        elif status == NVME_STATUS_TIMEOUT:
            counts[K.NVME_TIMEOUT_ERRORS] += error_count

        if (safe_int(entry.get('trtype')) or 0) > 0 and (safe_int(entry.get('trtype_spec_info')) or 0) > 0:
            counts[K.NVME_FABRIC_WARNINGS] += error_count
        if (safe_int(entry.get('lba')) or 0) > 0 and status in (NVME_STATUS_MEDIA_ERROR, NVME_STATUS_UNRECOVERED_READ):
            counts[K.NVME_SPARSE_ERRORS] += error_count
        if (safe_int(entry.get('vs')) or 0) > 0:
            counts[K.NVME_CHANGE_NOTIFICATIONS] += error_count
    return counts


def wear_used_percentage(attributes: AttributeSet) -> Optional[int]:
    """
    Return the SSD wear-used percentage, or None for devices without wear attributes.

    ATA wear attributes were already converted to "used" during normalization and
    NVMe percentage_used is "used" natively, so the stored value is returned as-is.
    """
    for key in WEAR_USED_PRIORITY:
        attr = attributes.get(key)
        if attr is not None and attr.value is not None:
            return attr.value
    return None


def error_counts(protocol: Protocol, attributes: AttributeSet) -> Dict[str, int]:
    """Collect the protocol error counters reported by the device, keyed by canonical name."""
    counts = {}
    for key in ERROR_COUNT_KEYS.get(protocol, ()):
        raw_value = _raw_of(attributes, key)
        if raw_value is not None:
            counts[key.value] = raw_value
    return counts


def _update(attributes: AttributeSet, name, value: int, raw_value: Optional[int] = None,
            threshold: Optional[int] = None, worst: Optional[int] = None, unit: str = "") -> None:
    key = name if isinstance(name, AttributeKey) else resolve_attribute_name(name)
    attr = attributes.get(key) if key is not None else None
    if attr is None:
        logger.warning(f"Unrecognized SMART attribute: {name}")
        return
    attr.value = value
    attr.raw_value = value if raw_value is None else raw_value
    if threshold is not None:
        attr.threshold = threshold
    if worst is not None:
        attr.worst = worst
    if unit:
        attr.unit = unit


def _raw_of(attributes: AttributeSet, key: AttributeKey) -> Optional[int]:
    attr = attributes.get(key)
    return attr.raw_value if attr is not None else None


def _parse_ieee(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).lower().replace("0x", ""), 16)
    except ValueError:
        logger.debug(f"Cannot parse IEEE OUI '{value}'")
        return None
