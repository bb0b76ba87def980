"""
Monitoring loop.

Ties the command adapter, normalizer, storage-unit resolver, classifier and writer
together and runs one collect -> normalize -> resolve -> classify -> publish pass
over all devices per interval.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from diskhealth.collectors.command_adapter import CollectionError, CommandAdapter
from diskhealth.enrichment.alert_classifier import AlertClassifier
from diskhealth.enrichment.storage_unit_resolver import StorageUnitResolver
from diskhealth.normalize.normalizer import AttributeNormalizer
from diskhealth.writer.base import Writer

LOG = logging.getLogger(__name__)


class StartupError(Exception):
    """Fatal condition detected before the loop starts."""


class DiskHealthMonitor:
    def __init__(self, settings, adapter: CommandAdapter, writer: Writer,
                 normalizer: Optional[AttributeNormalizer] = None,
                 resolver: Optional[StorageUnitResolver] = None,
                 classifier: Optional[AlertClassifier] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings
        self.adapter = adapter
        self.writer = writer
        self.normalizer = normalizer or AttributeNormalizer()
        self.resolver = resolver or StorageUnitResolver(settings.ceph_osd_base_path)
        self.classifier = classifier or AlertClassifier()
        self.sleep = sleep
        self.devices: List[str] = []

    def check_tools(self) -> None:
        """smartctl must be on PATH outside test mode."""
        if self.settings.test_mode:
            LOG.info(f"Test mode: replaying scenario '{self.settings.test_scenario}' "
                     f"from {self.settings.test_data_dir}")
            return
        if not self.adapter.smartctl_available():
            raise StartupError("smartctl not found in PATH")

    def discover_devices(self) -> List[str]:
        """
        Resolve the device list for this process.

        Test-mode device overrides win, then wildcard scanning, then the configured list.

        Raises:
            StartupError: when no device remains
        """
        if self.settings.test_mode and self.settings.test_devices:
            devices = list(self.settings.test_devices)
        elif self.settings.wildcard:
            LOG.info("Device wildcard configured, scanning for SMART capable devices")
            devices = self.adapter.scan_devices()
        else:
            devices = list(self.settings.disks)

        if not devices:
            raise StartupError("No devices to monitor")
        LOG.info(f"Monitoring {len(devices)} devices: {', '.join(devices)}")
        self.devices = devices
        return devices

    def start(self) -> None:
        """Startup checks, device discovery and writer startup (connect, metrics server)."""
        self.check_tools()
        self.discover_devices()
        self.writer.start()

    def run_cycle(self, loop_iteration: int = 1) -> Dict[str, list]:
        """
        Collect and publish all devices once.

        A device that fails is logged and skipped; the rest of the cycle continues.

        Returns:
            The data handed to the writer: ``{"records": [...], "events": [...]}``
        """
        records = []
        events = []
        for device in self.devices:
            try:
                raw = self.adapter.collect(device)
            except CollectionError as e:
                LOG.error(f"Failed to collect SMART data for {device}: {e.message}")
                continue

            try:
                unit_id = self.resolver.resolve(raw.device)
                record = self.normalizer.build_record(raw, self.settings.node_name,
                                                      self.settings.instance_id, unit_id)
                event = self.classifier.classify(record)
            except Exception as e:
                LOG.error(f"Failed to process SMART data for {device}: {e}", exc_info=True)
                continue

            records.append(record)
            events.append(event)

        data = {'records': records, 'events': events}
        if not self.writer.write(data, loop_iteration):
            LOG.error(f"Failed to write data for iteration {loop_iteration}")
        LOG.info(f"Iteration {loop_iteration}: processed {len(records)}/{len(self.devices)} devices")
        return data

    def run(self, max_iterations: int = 0) -> int:
        """
        Run cycles on the configured interval.

        Args:
            max_iterations: Stop after this many cycles; 0 runs until interrupted

        Returns:
            Number of completed iterations
        """
        interval = self.settings.interval
        loop_iteration = 1
        completed = 0
        try:
            while True:
                time_start = time.time()
                LOG.info(f"Starting collection iteration {loop_iteration} of "
                         f"{max_iterations if max_iterations > 0 else 'unlimited'}")
                self.run_cycle(loop_iteration)
                completed += 1

                elapsed = time.time() - time_start
                if elapsed >= interval:
                    LOG.warning(f"Collection took {elapsed:.2f}s but interval is {interval}s")
                else:
                    LOG.debug(f"Collection completed in {elapsed:.2f}s")

                if max_iterations > 0 and loop_iteration >= max_iterations:
                    LOG.info(f"Completed final iteration ({max_iterations}). Exiting gracefully.")
                    break

                if elapsed < interval:
                    self.sleep(interval - elapsed)
                loop_iteration += 1
        except KeyboardInterrupt:
            LOG.info("Interrupted by user. Exiting gracefully.")
        finally:
            LOG.info("Closing writer...")
            try:
                self.writer.close(timeout_seconds=self.settings.nats_timeout)
            except Exception as e:
                LOG.warning(f"Error closing writer: {e}")
        return completed
