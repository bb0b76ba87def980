"""
Normalization of protocol-specific SMART data.

- attributes.py: canonical attribute vocabulary, aliases and cleanup
- device_info.py: device descriptor extraction, model table, vendor and OEM detection
- normalizer.py: ATA / SCSI / NVMe attribute processing and record assembly
"""
