"""
Device descriptor extraction and normalization.

smartctl reports vendor, model and capacity differently per protocol, and the same
drive is labelled differently depending on the chassis vendor that ships it. This
module fills DeviceInfo from smartctl / nvme-cli output, rewrites known models to a
fleet-wide naming, guesses the manufacturer from model patterns and labels OEM
rebrands.
"""

import logging
import re
import string
from typing import Any, Dict, List, Optional, Tuple

from diskhealth.models import DeviceInfo, Protocol, RawDeviceRecord
from diskhealth.utils import bytes_to_gib, safe_int

logger = logging.getLogger(__name__)

# Exact model -> normalized fields. A leading '*' matches any model ending with the rest.
KNOWN_DEVICE_MODELS: Dict[str, Dict[str, Any]] = {
    # Intel SATA SSDs
    "INTEL SSDSC2BX200G4R": {"model": "SSDSC2BX200G4R", "product": "S3610", "capacity_gb": 200, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "*SSDSC2KG480G8R": {"product": "S4610", "capacity_gb": 480, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "SSDSC2KG240G8R": {"product": "S4610", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "INTEL SSDSC2BB240G4": {"model": "SSDSC2BB240G4", "product": "S3500", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 0.3},
    "*SSDSC2BB800G7": {"model": "SSDSC2BB800G7", "product": "S3520", "capacity_gb": 800, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},
    "*SSDSC2BB800G4": {"model": "S3500", "product": "S3500", "capacity_gb": 800, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 0.3},
    "*SSDSC2BB160G4": {"model": "SSDSC2BB160G4", "product": "S3500", "capacity_gb": 160, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 0.3},
    "*SSDSC2BB240G6": {"model": "SSDSC2BB240G6", "product": "S3510", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 0.3},
    "SSDSC2BB120G7R": {"product": "S3520", "capacity_gb": 120, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},
    "SSDSC2KG240G7R": {"product": "S4600", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},
    "SSDSC2KG480GZR": {"product": "S4620", "capacity_gb": 480, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "SSDSC2KB240G8R": {"product": "S4510", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 2.0},
    "SSDSC2KB480G8R": {"product": "S4510", "capacity_gb": 480, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.3},
    "INTEL SSDSC2BX800G4": {"model": "SSDSC2BX800G4", "product": "S3610", "capacity_gb": 800, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "INTEL SSDSC2KG019T8": {"model": "SSDSC2KG019T8", "product": "S4610-Generic", "capacity_gb": 1600, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "INTEL SSDSC2KG240G8": {"model": "SSDSC2KG240G8", "product": "S4610", "capacity_gb": 240, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "INTEL SSDSA2CW120G3": {"model": "SSDSA2CW120G3", "product": "320", "capacity_gb": 120, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},
    "INTEL SSDSC2CW120A3": {"model": "SSDSC2CW120A3", "product": "520", "capacity_gb": 120, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 2.0},
    "INTEL SSDPE2KX020T7T": {"model": "SSDPE2KX020T7T", "product": "S4500", "capacity_gb": 1920, "vendor": "Intel", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},

    # Intel NVMe, generic and Dell branded
    "INTEL SSDPE2KE016T8": {"model": "SSDPE2KE016T8", "product": "P4610-Generic", "capacity_gb": 1600, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "Dell Express Flash NVMe P4610 1.6TB SFF": {"model": "P4610", "product": "P4610-Dell", "capacity_gb": 1600, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "Dell Express Flash NVMe P4610 3.2TB SFF": {"model": "P4610", "product": "P4610-Dell", "capacity_gb": 3200, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "Dell Express Flash NVMe P4600 3.2TB SFF": {"model": "P4600", "product": "P4600-Dell", "capacity_gb": 3200, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "Dell Express Flash NVMe P4500 2.0TB SFF": {"model": "P4500", "product": "P4500-Dell", "capacity_gb": 2000, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 1.0},
    "Dell Ent NVMe P5600 MU U.2 3.2TB": {"model": "P5600", "product": "P5600-Dell", "capacity_gb": 3200, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},
    "Dell Ent NVMe P5600 MU U.2 1.6TB": {"model": "P5600", "product": "P5600-Dell", "capacity_gb": 1600, "vendor": "Intel", "media": "ssd", "form_factor": "u2", "dwpd": 3.0},

    # Western Digital / HGST
    "WDC WD8004FRYZ-01VAEB0": {"model": "WD8004FRYZ", "product": "Gold", "capacity_gb": 8000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD8002FRYZ-01FF2B0": {"product": "Gold", "capacity_gb": 8000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD8003FRYZ-01JPDB1": {"product": "Gold", "capacity_gb": 8000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD101KRYZ-01JPDB1": {"product": "Gold", "capacity_gb": 10000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD102KRYZ-01A5AB0": {"model": "WD102KRYZ-01A5AB0", "product": "Gold", "capacity_gb": 10000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD121KRYZ-01W0RB0": {"model": "WD121KRYZ-01W0RB0", "product": "Gold", "capacity_gb": 12000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD2005FBYZ-01YCBB2": {"model": "WD2005FBYZ-01YCBB2", "product": "Gold", "capacity_gb": 2000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WD1004FBYZ": {"product": "Re", "capacity_gb": 1000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "WDC WD10JFCX-68N6GN0": {"model": "WD10JFCX-68N6GN0", "product": "RedPlus", "capacity_gb": 1000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "sff", "rpm": 5400},
    "WDC WD20EFRX-68EUZN0": {"model": "WD20EFRX-68EUZN0", "product": "RedPlus", "capacity_gb": 2000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 5400},
    "WDC WD40EFRX-68WT0N0": {"model": "WD40EFRX-68WT0N0", "product": "Red", "capacity_gb": 4000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 5400},
    "WDC WD60EFRX-68L0BN1": {"model": "WD60EFRX-68L0BN1", "product": "RedPlus", "capacity_gb": 6000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 5400},
    "WDC WD5000BHTZ-04JCPV1": {"model": "WD5000BHTZ-04JCPV1", "product": "VelociRaptor", "capacity_gb": 500, "vendor": "WesternDigital", "media": "hdd", "form_factor": "sff", "rpm": 10000},
    "HUS722T2TALA600": {"product": "Ultrastar7k2", "capacity_gb": 2000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "HUS722T1TALA600": {"product": "Ultrastar7k2", "capacity_gb": 1000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "HUS728T8TAL5200": {"product": "UltrastarDC", "capacity_gb": 8000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "HUH721010AL5200": {"product": "UltrastarHe10", "capacity_gb": 10000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "HGST HUS722T1TALA604": {"model": "HUS722T1TALA604", "product": "Ultrastar7K2", "capacity_gb": 1000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "HGST HUS726060ALE610": {"model": "HUS726060ALE610", "product": "Ultrastar7k6", "capacity_gb": 6000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "*HUS726040ALA614": {"model": "HUS726040ALA614", "product": "Ultrastar7K6000", "capacity_gb": 4000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "*HUS726T4TALA6L0": {"model": "HUS726T4TALA6L0", "product": "UltrastarHC310", "capacity_gb": 4000, "vendor": "WesternDigital", "media": "hdd", "form_factor": "lff", "rpm": 7200},

    # Seagate
    "ST8000NM014A": {"product": "Exos7E10", "capacity_gb": 8000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST4000NM018B-2TF130": {"product": "Exos7E10", "capacity_gb": 4000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST1000NM0055-1V410C": {"product": "Exos7E8", "capacity_gb": 1000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST2000NM0155": {"product": "Exos7E8", "capacity_gb": 2000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST2000NM012A-2MP130": {"product": "Exos7E8", "capacity_gb": 2000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST2000NM013A": {"product": "Exos7E8", "capacity_gb": 2000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST10000NM0096": {"product": "ExosX10", "capacity_gb": 10000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST1000NX0473": {"product": "Exos7E2000", "capacity_gb": 1000, "vendor": "Seagate", "media": "hdd", "form_factor": "sff", "rpm": 7200},
    "ST1000NX0443": {"product": "Exos7E2000", "capacity_gb": 1000, "vendor": "Seagate", "media": "hdd", "form_factor": "sff", "rpm": 7200},
    "ST1000NM0033-9ZM173": {"product": "ConstellationES.3", "capacity_gb": 1000, "vendor": "Seagate", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "ST300MP0026": {"product": "EntPerf", "capacity_gb": 300, "vendor": "Seagate", "media": "hdd", "form_factor": "sff", "rpm": 15000},
    "DL2400MM0159": {"product": "Exos10E2400", "capacity_gb": 2400, "vendor": "Seagate", "media": "hdd", "form_factor": "sff", "rpm": 10000},

    # Toshiba
    "TOSHIBA MG03ACA100": {"model": "MG03ACA100", "product": "MG03", "capacity_gb": 1000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "TOSHIBA MG04ACA100NY": {"model": "MG04ACA100NY", "product": "MG04", "capacity_gb": 1000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "TOSHIBA MG04ACA200NY": {"model": "MG04ACA200NY", "product": "MG04", "capacity_gb": 2000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "TOSHIBA MG04ACA400N": {"model": "MG04ACA400N", "product": "MG04", "capacity_gb": 4000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "TOSHIBA MG08ADA400NY": {"model": "MG08ADA400NY", "product": "MG08-D", "capacity_gb": 4000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "MG04SCA20ENY": {"product": "MG04", "capacity_gb": 2000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},
    "MG06SCA800EY": {"product": "MG06", "capacity_gb": 8000, "vendor": "Toshiba", "media": "hdd", "form_factor": "lff", "rpm": 7200},

    # Hynix, Samsung, Micron SSDs
    "HFS480G32FEH-BA10A": {"product": "HFS", "capacity_gb": 480, "vendor": "Hynix", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "MZ7LH480HBHQ0D3": {"product": "PM883a", "capacity_gb": 480, "vendor": "Samsung", "media": "ssd", "form_factor": "sff", "dwpd": 3.6},
    "MZ7KH480HAHQ0D3": {"product": "SM883", "capacity_gb": 480, "vendor": "Samsung", "media": "ssd", "form_factor": "sff", "dwpd": 3.0},
    "MTFDDAV240TDU": {"product": "5300", "capacity_gb": 240, "vendor": "Micron", "media": "ssd", "form_factor": "sff", "dwpd": 1.0},
    "MTFDDAK960TDN": {"product": "5200MAX", "capacity_gb": 960, "vendor": "Micron", "media": "ssd", "form_factor": "sff", "dwpd": 5.0},
}

# Ordered; first match against model or family wins
VENDOR_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'^DL2400', re.IGNORECASE), "Seagate"),
    (re.compile(r'TOSHIBA', re.IGNORECASE), "Toshiba"),
    (re.compile(r'^MG0[345678]', re.IGNORECASE), "Toshiba"),
    (re.compile(r'INTEL', re.IGNORECASE), "Intel"),
    (re.compile(r'KIOXIA', re.IGNORECASE), "Kioxia"),
    (re.compile(r'WESTERN', re.IGNORECASE), "WesternDigital"),
    (re.compile(r'WDC', re.IGNORECASE), "WesternDigital"),
    (re.compile(r'^WD100', re.IGNORECASE), "WesternDigital"),
    (re.compile(r'SEAGATE', re.IGNORECASE), "Seagate"),
    (re.compile(r'^ST[12][0-9]', re.IGNORECASE), "Seagate"),
    (re.compile(r'HGST', re.IGNORECASE), "HGST"),
    (re.compile(r'^HU[HS]', re.IGNORECASE), "HGST"),
    (re.compile(r'MICRON', re.IGNORECASE), "Micron"),
    (re.compile(r'MTFDD', re.IGNORECASE), "Micron"),
    (re.compile(r'SANDISK', re.IGNORECASE), "SanDisk"),
    (re.compile(r'SAMSUNG', re.IGNORECASE), "Samsung"),
    (re.compile(r'^MZ7', re.IGNORECASE), "Samsung"),
]

# chassis vendor -> [(manufacturer substrings, label)]
OEM_RULES: List[Tuple[Tuple[str, ...], List[Tuple[Tuple[str, ...], str, bool]]]] = [
    (("lenovo",), [
        (("toshiba",), "Lenovo (Toshiba OEM)", True),
        (("seagate",), "Lenovo (Seagate OEM)", True),
        (("hgst",), "Lenovo (HGST OEM)", True),
    ]),
    (("dell",), [
        (("seagate",), "Dell (Seagate OEM)", True),
        (("western digital", "wd"), "Dell (WD OEM)", False),
        (("toshiba",), "Dell (Toshiba OEM)", True),
    ]),
    (("hp", "hpe"), [
        (("western digital", "wd"), "HP (WD OEM)", False),
        (("seagate",), "HP (Seagate OEM)", True),
        (("toshiba",), "HP (Toshiba OEM)", True),
    ]),
    (("supermicro",), [
        (("intel",), "Supermicro (Intel OEM)", True),
        (("samsung",), "Supermicro (Samsung OEM)", True),
    ]),
]

# product substrings naming a manufacturer -> label used in "<Vendor> (<label> OEM)"
GENERIC_MANUFACTURERS: List[Tuple[Tuple[str, ...], str]] = [
    (("seagate",), "Seagate"),
    (("western digital", "wd"), "WD"),
    (("toshiba",), "Toshiba"),
    (("hgst",), "HGST"),
    (("samsung",), "Samsung"),
    (("intel",), "Intel"),
]


def fill_device_info(record: RawDeviceRecord) -> DeviceInfo:
    """
    Build a DeviceInfo from smartctl output, applying nvme-cli identity when present.

    Args:
        record: Raw device record for one device

    Returns:
        Populated DeviceInfo (capacity in GiB, never negative)
    """
    data = record.payload
    info = DeviceInfo(
        model=_text(data.get('model_name') or data.get('device_model')),
        model_family=_text(data.get('model_family')),
        serial_number=_text(data.get('serial_number')),
        firmware_version=_text(data.get('firmware_version')),
        lun_id=_text(data.get('logical_unit_id')),
        form_factor=_text((data.get('form_factor') or {}).get('name')),
    )
    rotation_rate = safe_int(data.get('rotation_rate'))

    if record.protocol == Protocol.ATA:
        info.vendor = "ATA"
        info.product = info.model
        info.media = "ssd" if rotation_rate == 0 else "hdd"
        if rotation_rate and rotation_rate > 0:
            info.rpm = rotation_rate
        info.capacity_gb = bytes_to_gib((data.get('user_capacity') or {}).get('bytes'))

    elif record.protocol == Protocol.SCSI:
        info.model = _text(data.get('scsi_model_name')) or info.model
        info.vendor = _text(data.get('scsi_vendor') or data.get('vendor'))
        info.product = _text(data.get('scsi_product') or data.get('product'))
        device_type = str((data.get('device_type') or {}).get('name', '') or (data.get('device') or {}).get('type', ''))
        info.media = "ssd" if ('ssd' in device_type.lower() or rotation_rate == 0) else "hdd"
        if rotation_rate and rotation_rate > 0:
            info.rpm = rotation_rate
        info.capacity_gb = bytes_to_gib((data.get('user_capacity') or {}).get('bytes'))

    elif record.protocol == Protocol.NVME:
        pci_vendor = data.get('nvme_pci_vendor') or {}
        vendor_id = safe_int(pci_vendor.get('id'))
        subsystem_id = safe_int(pci_vendor.get('subsystem_id'))
        if vendor_id is not None:
            info.vendor = f"VID:0x{vendor_id:04x}"
            info.vendor_id = f"0x{vendor_id:04x}"
        if subsystem_id is not None:
            info.subsystem_vendor_id = f"0x{subsystem_id:04x}"
        info.product = info.model
        info.media = "nvme"
        total_capacity = safe_int(data.get('nvme_total_capacity'))
        if total_capacity and total_capacity > 0:
            info.capacity_gb = bytes_to_gib(total_capacity)
        else:
            info.capacity_gb = bytes_to_gib((data.get('user_capacity') or {}).get('bytes'))
        health_log = data.get('nvme_smart_health_information_log') or {}
        percentage_used = safe_int(health_log.get('percentage_used'))
        if percentage_used is not None:
            info.dwpd = float(percentage_used)
        if record.nvme_controller:
            _apply_nvme_identity(info, record.nvme_controller)

    smart_status = data.get('smart_status') or {}
    if 'passed' in smart_status:
        info.health = bool(smart_status.get('passed'))

    return info


def _apply_nvme_identity(info: DeviceInfo, controller: Dict[str, Any]) -> None:
    """Override identity fields with `nvme id-ctrl` output."""
    if controller.get('mn'):
        info.model = _text(controller['mn'])
        info.product = info.model
    if controller.get('sn'):
        info.serial_number = _text(controller['sn'])
    if controller.get('fr'):
        info.firmware_version = _text(controller['fr'])
    total_capacity = safe_int(controller.get('tnvmcap'))
    if total_capacity and total_capacity > 0:
        info.capacity_gb = bytes_to_gib(total_capacity)
    vendor_id = safe_int(controller.get('vid'))
    if vendor_id and vendor_id > 0:
        info.vendor = f"VID:0x{vendor_id:04x}"
        info.vendor_id = f"0x{vendor_id:04x}"
    subsystem_vendor_id = safe_int(controller.get('ssvid'))
    if subsystem_vendor_id and subsystem_vendor_id > 0:
        info.subsystem_vendor_id = f"0x{subsystem_vendor_id:04x}"
    if controller.get('subnqn'):
        # the subsystem NQN usually names the real manufacturer, used by OEM detection
        info.product = _text(controller['subnqn'])
    if controller.get('ieee'):
        info.lun_id = str(controller['ieee'])


def lookup_known_model(model: str) -> Optional[Dict[str, Any]]:
    """Find the normalization entry for a model, honouring '*' suffix entries."""
    if not model:
        return None
    if model in KNOWN_DEVICE_MODELS:
        return KNOWN_DEVICE_MODELS[model]
    for pattern, fields in KNOWN_DEVICE_MODELS.items():
        if pattern.startswith('*') and model.endswith(pattern[1:]):
            return fields
    return None


def normalize_device_info(info: DeviceInfo) -> DeviceInfo:
    """Rewrite a known device model to the fleet-wide naming. Unknown models are left as-is."""
    fields = lookup_known_model(info.model) or lookup_known_model(info.product)
    if fields:
        for name, value in fields.items():
            setattr(info, name, value)
        logger.debug(f"Normalized device model {info.model} -> {info.vendor} {info.product}")
    return info


def find_vendor(model: str, model_family: str = "") -> str:
    """Guess the manufacturer from model / family patterns. Returns "" when nothing matches."""
    for pattern, vendor in VENDOR_PATTERNS:
        if pattern.search(model or "") or pattern.search(model_family or ""):
            return vendor
    return ""


def detect_oem_relationship(vendor: str, model: str, product: str) -> str:
    """
    Detect a rebranded drive from vendor, model and product strings.

    Returns a label such as "Dell (Seagate OEM)" or "" when no relationship is found.
    """
    vendor = (vendor or "").lower()
    model = (model or "").lower()
    product = (product or "").lower()

    for vendor_names, rules in OEM_RULES:
        if not any(name in vendor for name in vendor_names):
            continue
        for needles, label, check_model in rules:
            for needle in needles:
                # short manufacturer tags like "wd" are only trusted in the product field
                if needle in product or (check_model or len(needle) > 2) and needle in model:
                    return label

    for needles, label in GENERIC_MANUFACTURERS:
        if any(needle in product for needle in needles) and not any(needle in vendor for needle in needles):
            if not vendor:
                return ""
            return f"{string.capwords(vendor)} ({label} OEM)"

    return ""


def enhance_device_info(info: DeviceInfo) -> DeviceInfo:
    """Fill vendor and an OEM model family where they are missing. Never overwrites a family."""
    if not info.vendor or info.vendor == "ATA":
        guessed = find_vendor(info.model, info.model_family)
        if guessed:
            info.vendor = guessed
    if not info.model_family:
        oem = detect_oem_relationship(info.vendor, info.model, info.product)
        if oem:
            info.model_family = oem
    return info


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""
