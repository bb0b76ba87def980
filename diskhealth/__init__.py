"""
Disk health collector.

The application follows a modular architecture:
- collectors: Run smartctl / nvme-cli (or replay fixtures) and return raw device records
- normalize: Map ATA, SCSI and NVMe attributes into one canonical attribute set
- enrichment: Resolve storage-unit (OSD) ids and classify alert severity
- cache: Per-device counter state for monotonic Prometheus counters
- writer: Output records to Prometheus, NATS or stdout
"""

__version__ = "1.0.0"
