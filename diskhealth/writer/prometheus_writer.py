"""
Prometheus exporter writer for the disk health collector.
"""

import logging
import threading
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

from diskhealth.cache.counter_state import CounterState
from diskhealth.models import NormalizedRecord
from diskhealth.writer.base import Writer

LOG = logging.getLogger(__name__)

LABELS = ['device', 'node', 'instance', 'osd_id']


class PrometheusWriter(Writer):
    """
    Writer that exposes NormalizedRecords as Prometheus metrics for scraping.

    Point-in-time readings are gauges. Device counters that only ever grow
    (power-on hours, error counts) are exported as Prometheus counters fed with
    increments computed by CounterState, so a device-side reset never makes the
    exported series go backwards.
    """

    def __init__(self, port: int = 8080, registry: Optional[CollectorRegistry] = None,
                 start_server: bool = True, counter_state: Optional[CounterState] = None):
        """
        Initialize the Prometheus writer.

        Args:
            port: Port to serve Prometheus metrics on (default: 8080)
            registry: Registry to publish into; a private one is created when None
            start_server: Serve the registry over HTTP when start() is called
            counter_state: Previous counter readings, shared across cycles
        """
        self.port = port
        self.start_server = start_server
        self.server_started = False
        self.server_lock = threading.Lock()

        # Custom registry to avoid conflicts with the default registry
        self.prometheus_registry = registry if registry is not None else CollectorRegistry()
        self.counter_state = counter_state if counter_state is not None else CounterState()
        self.prometheus_metrics = self._initialize_metrics()

        LOG.info(f"PrometheusWriter initialized, will serve metrics on port {port}")

    def _initialize_metrics(self) -> Dict[str, Any]:
        """Initialize all Prometheus metric definitions."""
        registry = self.prometheus_registry
        return {
            'temperature': Gauge('disk_temperature_celsius', 'Disk temperature in Celsius',
                                 LABELS, registry=registry),
            'reallocated_sectors': Gauge('disk_reallocated_sectors', 'Number of reallocated sectors',
                                         LABELS, registry=registry),
            'pending_sectors': Gauge('disk_pending_sectors', 'Number of pending sectors',
                                     LABELS, registry=registry),
            'ssd_life_used': Gauge('ssd_life_used_percentage', 'Percentage of SSD life used',
                                   LABELS, registry=registry),
            'capacity': Gauge('disk_capacity_gb', 'Capacity of the disk in GB',
                              LABELS, registry=registry),
            'attributes': Gauge('smart_attributes', 'Raw value of SMART attributes of the disk',
                                LABELS + ['attribute'], registry=registry),
            # exported with the _total suffix
            'power_on_hours': Counter('disk_power_on_hours', 'Number of hours the disk has been powered on',
                                      LABELS, registry=registry),
            'error_counts': Counter('disk_error_counts', 'Various error counts for the disk',
                                    LABELS + ['error_type'], registry=registry),
        }

    def start(self) -> None:
        """Start the Prometheus HTTP server if not already started."""
        if not self.start_server:
            return
        with self.server_lock:
            if not self.server_started:
                try:
                    start_http_server(self.port, registry=self.prometheus_registry)
                    self.server_started = True
                    LOG.info(f"Prometheus metrics server started on port {self.port}")
                except Exception as e:
                    LOG.error(f"Failed to start Prometheus server on port {self.port}: {e}")
                    raise

    def write(self, data: Dict[str, Any], loop_iteration: int = 1) -> bool:
        """
        Update Prometheus metrics from the records of one cycle.

        Args:
            data: Dictionary containing a ``records`` list
            loop_iteration: Current iteration number

        Returns:
            bool: True if successful, False otherwise
        """
        records = data.get('records') or []
        try:
            for record in records:
                self.publish(record)
            LOG.debug(f"Updated Prometheus metrics for {len(records)} devices (iteration {loop_iteration})")
            return True
        except Exception as e:
            LOG.error(f"Failed to update Prometheus metrics: {e}", exc_info=True)
            return False

    def publish(self, record: NormalizedRecord) -> None:
        """Set gauges and advance counters for one device."""
        metrics = self.prometheus_metrics
        labels = {
            'device': record.device,
            'node': record.node_name,
            'instance': record.instance_id,
            'osd_id': record.storage_unit_id or "",
        }

        gauges = (
            ('temperature', record.temperature_celsius),
            ('reallocated_sectors', record.reallocated_sectors),
            ('pending_sectors', record.pending_sectors),
            ('ssd_life_used', record.ssd_life_used),
        )
        for name, value in gauges:
            if value is not None:
                metrics[name].labels(**labels).set(value)
        metrics['capacity'].labels(**labels).set(record.capacity_gb)

        for key, attr in record.attributes.items():
            if attr.raw_value is not None:
                metrics['attributes'].labels(attribute=key.value, **labels).set(attr.raw_value)

        if record.power_on_hours is not None:
            delta = self.counter_state.increment((record.device, 'power_on_hours'), record.power_on_hours)
            metrics['power_on_hours'].labels(**labels).inc(delta)

        for error_type, count in record.error_counts.items():
            delta = self.counter_state.increment((record.device, error_type), count)
            metrics['error_counts'].labels(error_type=error_type, **labels).inc(delta)
