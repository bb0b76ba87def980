"""
Canonical SMART attribute vocabulary.

SMART attribute ids are not standardized across manufacturers, so attributes are
matched by name. Every vendor or protocol spelling resolves into one member of the
closed AttributeKey enumeration. Names that resolve to nothing are dropped by the
normalizer instead of creating new metric series.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from diskhealth.models import CanonicalAttribute


class AttributeKey(str, Enum):
    """Canonical attribute keys (lower snake case)"""
    AIRFLOW_TEMPERATURE_CEL = "airflow_temperature_cel"
    COMMAND_TIMEOUT = "command_timeout"
    CURRENT_PENDING_SECTOR = "current_pending_sector"
    END_TO_END_ERROR = "end_to_end_error"
    ERASE_FAIL_COUNT = "erase_fail_count"
    G_SENSE_ERROR_RATE = "g_sense_error_rate"
    HARDWARE_ECC_RECOVERED = "hardware_ecc_recovered"
    HOST_READS_MIB = "host_reads_mib"
    HOST_READS_32MIB = "host_reads_32mib"
    HOST_WRITES_MIB = "host_writes_mib"
    HOST_WRITES_32MIB = "host_writes_32mib"
    LOAD_CYCLE_COUNT = "load_cycle_count"
    HELIUM_LEVEL = "helium_level"
    MEDIA_WEAROUT_INDICATOR = "media_wearout_indicator"
    MULTI_ZONE_ERROR_RATE = "multi_zone_error_rate"
    WEAR_LEVELING_COUNT = "wear_leveling_count"
    NAND_WRITES_1GIB = "nand_writes_1gib"
    OFFLINE_UNCORRECTABLE = "offline_uncorrectable"
    PERCENT_LIFE_REMAINING = "percent_life_remaining"
    PERCENT_LIFETIME_REMAIN = "percent_lifetime_remain"
    PERCENTAGE_USED = "percentage_used"
    POWER_CYCLE_COUNT = "power_cycle_count"
    POWER_OFF_RETRACT_COUNT = "power_off_retract_count"
    POWER_ON_HOURS = "power_on_hours"
    PROGRAM_FAIL_COUNT = "program_fail_count"
    RAW_READ_ERROR_RATE = "raw_read_error_rate"
    REALLOCATED_EVENT_COUNT = "reallocated_event_count"
    REALLOCATED_SECTOR_CT = "reallocated_sector_ct"
    REALLOCATE_NAND_BLK_CNT = "reallocate_nand_blk_cnt"
    REPORTED_UNCORRECT = "reported_uncorrect"
    SATA_DOWNSHIFT_COUNT = "sata_downshift_count"
    SEEK_ERROR_RATE = "seek_error_rate"
    SPIN_RETRY_COUNT = "spin_retry_count"
    SPIN_UP_TIME = "spin_up_time"
    START_STOP_COUNT = "start_stop_count"
    TEMPERATURE_CASE = "temperature_case"
    TEMPERATURE_CELSIUS = "temperature_celsius"
    TEMPERATURE_INTERNAL = "temperature_internal"
    TOTAL_LBAS_READ = "total_lbas_read"
    TOTAL_LBAS_WRITTEN = "total_lbas_written"
    TOTAL_HOST_SECTOR_WRITE = "total_host_sector_write"
    UDMA_CRC_ERROR_COUNT = "udma_crc_error_count"
    UNSAFE_SHUTDOWN_COUNT = "unsafe_shutdown_count"
    WORKLD_HOST_READS_PERC = "workld_host_reads_perc"
    WORKLD_MEDIA_WEAR_INDIC = "workld_media_wear_indic"
    WORKLOAD_MINUTES = "workload_minutes"

    # SCSI error counter log and defect list
    READ_ERRORS_CORRECTED = "read_errors_corrected"
    WRITE_ERRORS_CORRECTED = "write_errors_corrected"
    VERIFY_ERRORS_CORRECTED = "verify_errors_corrected"
    READ_GIGABYTES_PROCESSED = "read_gigabytes_processed"
    WRITE_GIGABYTES_PROCESSED = "write_gigabytes_processed"
    TOTAL_UNCORRECTED_READ_ERRORS = "total_uncorrected_read_errors"
    TOTAL_UNCORRECTED_WRITE_ERRORS = "total_uncorrected_write_errors"
    TOTAL_UNCORRECTED_VERIFY_ERRORS = "total_uncorrected_verify_errors"
    GROWN_DEFECTS_COUNT = "grown_defects_count"

    # NVMe health information log
    UNSAFE_SHUTDOWNS = "unsafe_shutdowns"
    HOST_READ_COMMANDS = "host_read_commands"
    HOST_WRITE_COMMANDS = "host_write_commands"
    CONTROLLER_BUSY_TIME = "controller_busy_time"
    ERROR_INFORMATION_LOG_ENTRIES = "error_information_log_entries"
    AVAILABLE_SPARE = "available_spare"
    AVAILABLE_SPARE_THRESHOLD = "available_spare_threshold"
    MEDIA_AND_DATA_INTEGRITY_ERRORS = "media_and_data_integrity_errors"

    # nvme-cli id-ctrl and error-log
    NVME_VENDOR_ID = "nvme_vendor_id"
    NVME_SUBSYSTEM_VENDOR_ID = "nvme_subsystem_vendor_id"
    NVME_IEEE_OUI = "nvme_ieee_oui"
    NVME_SUBSYSTEM_NQN = "nvme_subsystem_nqn"
    NVME_ERROR_LOG_ENTRIES = "nvme_error_log_entries"
    NVME_FABRIC_WARNINGS = "nvme_fabric_warnings"
    NVME_SPARSE_ERRORS = "nvme_sparse_errors"
    NVME_CHANGE_NOTIFICATIONS = "nvme_change_notifications"
    NVME_MEDIA_ERRORS = "nvme_media_errors"
    NVME_ABORTED_COMMANDS = "nvme_aborted_commands"
    NVME_TIMEOUT_ERRORS = "nvme_timeout_errors"


K = AttributeKey

# key -> (description, unit)
ATTRIBUTE_CATALOG: Dict[AttributeKey, Tuple[str, str]] = {
    K.AIRFLOW_TEMPERATURE_CEL: ("Airflow Temperature in Celsius", "Celsius"),
    K.COMMAND_TIMEOUT: ("Command Timeout", "ms"),
    K.CURRENT_PENDING_SECTOR: ("Current Pending Sector", "count"),
    K.END_TO_END_ERROR: ("End-to-End Error", "count"),
    K.ERASE_FAIL_COUNT: ("Erase Fail Count", "count"),
    K.G_SENSE_ERROR_RATE: ("G-sense Error Rate", "count"),
    K.HARDWARE_ECC_RECOVERED: ("Hardware ECC Recovered", "count"),
    K.HOST_READS_MIB: ("Host Reads in MiB", "MiB"),
    K.HOST_READS_32MIB: ("Host Reads in 32 MiB", "32 MiB"),
    K.HOST_WRITES_MIB: ("Host Writes in MiB", "MiB"),
    K.HOST_WRITES_32MIB: ("Host Writes in 32 MiB", "32 MiB"),
    K.LOAD_CYCLE_COUNT: ("Load Cycle Count", "count"),
    K.HELIUM_LEVEL: ("Helium Level", "percent"),
    K.MEDIA_WEAROUT_INDICATOR: ("Media Wearout Indicator", "percent"),
    K.MULTI_ZONE_ERROR_RATE: ("Multi-Zone Error Rate", "count"),
    K.WEAR_LEVELING_COUNT: ("Wear Leveling Count", "percent"),
    K.NAND_WRITES_1GIB: ("NAND Writes in 1 GiB", "GiB"),
    K.OFFLINE_UNCORRECTABLE: ("Offline Uncorrectable", "count"),
    K.PERCENT_LIFE_REMAINING: ("Percent Life Remaining", "percent"),
    K.PERCENT_LIFETIME_REMAIN: ("Percent Lifetime Remaining", "percent"),
    K.PERCENTAGE_USED: ("Percentage Used", "percent"),
    K.POWER_CYCLE_COUNT: ("Power Cycle Count", "count"),
    K.POWER_OFF_RETRACT_COUNT: ("Power Off Retract Count", "count"),
    K.POWER_ON_HOURS: ("Power-On Hours", "hours"),
    K.PROGRAM_FAIL_COUNT: ("Program Fail Count", "count"),
    K.RAW_READ_ERROR_RATE: ("Raw Read Error Rate", "count"),
    K.REALLOCATED_EVENT_COUNT: ("Reallocated Event Count", "count"),
    K.REALLOCATED_SECTOR_CT: ("Reallocated Sector Count", "count"),
    K.REALLOCATE_NAND_BLK_CNT: ("Reallocate NAND Block Count", "count"),
    K.REPORTED_UNCORRECT: ("Reported Uncorrectable Errors", "count"),
    K.SATA_DOWNSHIFT_COUNT: ("SATA Downshift Count", "count"),
    K.SEEK_ERROR_RATE: ("Seek Error Rate", "count"),
    K.SPIN_RETRY_COUNT: ("Spin Retry Count", "count"),
    K.SPIN_UP_TIME: ("Spin-Up Time", "ms"),
    K.START_STOP_COUNT: ("Start/Stop Count", "count"),
    K.TEMPERATURE_CASE: ("Case Temperature", "Celsius"),
    K.TEMPERATURE_CELSIUS: ("Temperature in Celsius", "Celsius"),
    K.TEMPERATURE_INTERNAL: ("Internal Temperature", "Celsius"),
    K.TOTAL_LBAS_READ: ("Total LBAs Read", "sectors"),
    K.TOTAL_LBAS_WRITTEN: ("Total LBAs Written", "sectors"),
    K.TOTAL_HOST_SECTOR_WRITE: ("Total Host Sector Writes", "sectors"),
    K.UDMA_CRC_ERROR_COUNT: ("UDMA CRC Error Count", "count"),
    K.UNSAFE_SHUTDOWN_COUNT: ("Unsafe Shutdown Count", "count"),
    K.WORKLD_HOST_READS_PERC: ("Workload Host Reads Percentage", "percent"),
    K.WORKLD_MEDIA_WEAR_INDIC: ("Workload Media Wear Indicator", "percent"),
    K.WORKLOAD_MINUTES: ("Workload Minutes", "minutes"),
    K.READ_ERRORS_CORRECTED: ("Read Errors Corrected", "count"),
    K.WRITE_ERRORS_CORRECTED: ("Write Errors Corrected", "count"),
    K.VERIFY_ERRORS_CORRECTED: ("Verify Errors Corrected", "count"),
    K.READ_GIGABYTES_PROCESSED: ("Read Gigabytes Processed", "GiB"),
    K.WRITE_GIGABYTES_PROCESSED: ("Write Gigabytes Processed", "GiB"),
    K.TOTAL_UNCORRECTED_READ_ERRORS: ("Total Uncorrected Read Errors", "count"),
    K.TOTAL_UNCORRECTED_WRITE_ERRORS: ("Total Uncorrected Write Errors", "count"),
    K.TOTAL_UNCORRECTED_VERIFY_ERRORS: ("Total Uncorrected Verify Errors", "count"),
    K.GROWN_DEFECTS_COUNT: ("Grown Defects Count", "count"),
    K.UNSAFE_SHUTDOWNS: ("Unsafe Shutdowns", "count"),
    K.HOST_READ_COMMANDS: ("Host Read Commands", "commands"),
    K.HOST_WRITE_COMMANDS: ("Host Write Commands", "commands"),
    K.CONTROLLER_BUSY_TIME: ("Controller Busy Time", "minutes"),
    K.ERROR_INFORMATION_LOG_ENTRIES: ("Error Information Log Entries", "count"),
    K.AVAILABLE_SPARE: ("Available Spare", "percent"),
    K.AVAILABLE_SPARE_THRESHOLD: ("Available Spare Threshold", "percent"),
    K.MEDIA_AND_DATA_INTEGRITY_ERRORS: ("Media and Data Integrity Errors", "count"),
    K.NVME_VENDOR_ID: ("NVMe PCI Vendor ID", "id"),
    K.NVME_SUBSYSTEM_VENDOR_ID: ("NVMe PCI Subsystem Vendor ID", "id"),
    K.NVME_IEEE_OUI: ("NVMe IEEE OUI Identifier", "hex"),
    K.NVME_SUBSYSTEM_NQN: ("NVMe Subsystem NQN Length", "chars"),
    K.NVME_ERROR_LOG_ENTRIES: ("NVMe Error Log Entries", "count"),
    K.NVME_FABRIC_WARNINGS: ("NVMe Fabric Warnings", "count"),
    K.NVME_SPARSE_ERRORS: ("NVMe Sparse Errors", "count"),
    K.NVME_CHANGE_NOTIFICATIONS: ("NVMe Change Notifications", "count"),
    K.NVME_MEDIA_ERRORS: ("NVMe Media Errors", "count"),
    K.NVME_ABORTED_COMMANDS: ("NVMe Aborted Commands", "count"),
    K.NVME_TIMEOUT_ERRORS: ("NVMe Timeout Errors", "count"),
}

# Vendor spellings that differ from the canonical key after lower-casing
ATTRIBUTE_ALIASES: Dict[str, AttributeKey] = {
    "current_drive_temperature": K.TEMPERATURE_CELSIUS,
    "temperature": K.TEMPERATURE_CELSIUS,
    "power-off_retract_count": K.POWER_OFF_RETRACT_COUNT,
    "g-sense_error_rate": K.G_SENSE_ERROR_RATE,
    "end-to-end_error": K.END_TO_END_ERROR,
    "power_on_hours_and_msec": K.POWER_ON_HOURS,
    "unexpect_power_loss_ct": K.UNSAFE_SHUTDOWN_COUNT,
    "uncorrectable_error_cnt": K.OFFLINE_UNCORRECTABLE,
    "wear_range_delta": K.WORKLD_MEDIA_WEAR_INDIC,
    "reallocated_sector_count": K.REALLOCATED_SECTOR_CT,
    "current_pending_sector_count": K.CURRENT_PENDING_SECTOR,
    "offline_uncorrectable_sector_count": K.OFFLINE_UNCORRECTABLE,
}

# Manufacturer convention is "remaining life"; stored canonically as 100 - reading
WEAR_REMAINING_KEYS = frozenset({
    K.MEDIA_WEAROUT_INDICATOR,
    K.PERCENT_LIFE_REMAINING,
    K.PERCENT_LIFETIME_REMAIN,
    K.WEAR_LEVELING_COUNT,
})

# Lookup order for the wear-used percentage
WEAR_USED_PRIORITY = (
    K.MEDIA_WEAROUT_INDICATOR,
    K.PERCENT_LIFE_REMAINING,
    K.PERCENT_LIFETIME_REMAIN,
    K.WEAR_LEVELING_COUNT,
    K.PERCENTAGE_USED,
)

TEMPERATURE_KEYS = frozenset({
    K.AIRFLOW_TEMPERATURE_CEL,
    K.TEMPERATURE_CASE,
    K.TEMPERATURE_CELSIUS,
    K.TEMPERATURE_INTERNAL,
})


def new_attribute_set() -> Dict[AttributeKey, CanonicalAttribute]:
    """Seed a fresh attribute set with every catalog key unset."""
    return {
        key: CanonicalAttribute(description=description, unit=unit)
        for key, (description, unit) in ATTRIBUTE_CATALOG.items()
    }


def resolve_attribute_name(name: str) -> Optional[AttributeKey]:
    """
    Resolve a vendor attribute name into its canonical key.

    Matching is case-insensitive. Returns None when the name is not part of the
    canonical vocabulary.
    """
    if not name:
        return None
    normalized = name.strip().lower()
    if normalized in ATTRIBUTE_ALIASES:
        return ATTRIBUTE_ALIASES[normalized]
    try:
        return AttributeKey(normalized)
    except ValueError:
        return None


def cleanup_attributes(attributes: Dict[AttributeKey, CanonicalAttribute]) -> Dict[AttributeKey, CanonicalAttribute]:
    """
    Remove every attribute whose threshold, value, worst and raw value are all unset.

    The mapping is modified in place and also returned for chaining.
    """
    for key in [k for k, attr in attributes.items() if attr.is_unset()]:
        del attributes[key]
    return attributes
