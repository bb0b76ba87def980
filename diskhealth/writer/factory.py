"""
Writer factory for the disk health collector.
"""

import logging
from typing import Optional

from diskhealth.cache.counter_state import CounterState
from diskhealth.writer.base import Writer
from diskhealth.writer.multi_writer import MultiWriter
from diskhealth.writer.nats_writer import NatsWriter
from diskhealth.writer.prometheus_writer import PrometheusWriter
from diskhealth.writer.stdout_writer import StdoutWriter

LOG = logging.getLogger(__name__)


class WriterFactory:
    """
    Factory for creating writer instances based on configuration.
    """

    @staticmethod
    def create_writer(settings, counter_state: Optional[CounterState] = None) -> Writer:
        """
        Create the writer for the configured sinks.

        Args:
            settings: Settings instance
            counter_state: Previous counter readings for the Prometheus writer

        Returns:
            PrometheusWriter and/or NatsWriter (wrapped in a MultiWriter when both
            are enabled), or a StdoutWriter when neither is configured
        """
        writers = []

        if settings.prometheus:
            LOG.info(f"Creating Prometheus writer on port {settings.prometheus_port}")
            writers.append(PrometheusWriter(port=settings.prometheus_port, counter_state=counter_state))

        if settings.nats_url:
            LOG.info(f"Creating NATS writer for {settings.nats_url}, subject {settings.nats_subject}")
            writers.append(NatsWriter(settings.nats_url, settings.nats_subject, timeout=settings.nats_timeout))

        if not writers:
            LOG.info("No Prometheus or NATS output configured, writing records to stdout")
            return StdoutWriter()

        if len(writers) == 1:
            return writers[0]

        LOG.info("Creating MultiWriter for Prometheus and NATS output")
        return MultiWriter(writers)
