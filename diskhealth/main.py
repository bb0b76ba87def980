# -----------------------------------------------------------------------------
# Copyright (c) 2025 Disk Health Collector contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

import argparse
import logging
import os
import sys

from diskhealth.cache.counter_state import CounterState
from diskhealth.collectors.command_adapter import CommandAdapter
from diskhealth.config import ConfigurationError, Settings, split_list
from diskhealth.enrichment.alert_classifier import AlertClassifier, Thresholds
from diskhealth.enrichment.storage_unit_resolver import StorageUnitResolver
from diskhealth.monitor import DiskHealthMonitor, StartupError
from diskhealth.normalize.normalizer import AttributeNormalizer
from diskhealth.writer.factory import WriterFactory

FORMAT = '%(asctime)s - %(levelname)s - %(funcName)s - %(lineno)d - %(message)s'
DATEFMT = '%Y-%m-%dT%H:%M:%SZ'

# argparse dest -> Settings attribute
CLI_OVERRIDES = {
    'intervalTime': 'interval',
    'natsUrl': 'nats_url',
    'natsSubject': 'nats_subject',
    'prometheus': 'prometheus',
    'prometheusPort': 'prometheus_port',
    'nodeName': 'node_name',
    'instanceId': 'instance_id',
    'cephOsdBasePath': 'ceph_osd_base_path',
    'grownDefectsThreshold': 'grown_defects_threshold',
    'pendingSectorsThreshold': 'pending_sectors_threshold',
    'reallocatedSectorsThreshold': 'reallocated_sectors_threshold',
    'lifetimeUsedThreshold': 'lifetime_used_threshold',
    'testMode': 'test_mode',
    'testDataDir': 'test_data_dir',
    'testScenario': 'test_scenario',
    'commandTimeout': 'command_timeout',
    'maxIterations': 'max_iterations',
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect disk health metrics with smartctl and nvme-cli")
    parser.add_argument('--config', type=str, default=None,
        help='Path to YAML config file. If not given, settings are read from the environment and .env.')
    parser.add_argument('--disks', type=str, default=None,
        help='Comma separated list of devices to monitor, or * to scan for all SMART capable devices.')
    parser.add_argument('--intervalTime', type=int, default=None,
        help='Collection interval in seconds. Default: 10')
    parser.add_argument('--natsUrl', type=str, default=None,
        help='NATS server URL for alert events, e.g. nats://nats:4222. Empty disables NATS output.')
    parser.add_argument('--natsSubject', type=str, default=None,
        help='NATS subject for alert events. Default: osd.disk.health')
    parser.add_argument('--prometheus', action='store_true', default=None,
        help='Serve Prometheus metrics.')
    parser.add_argument('--prometheusPort', type=int, default=None,
        help='Port for Prometheus metrics server (default: 8080).')
    parser.add_argument('--nodeName', type=str, default=None,
        help='Node name attached to every record. Default: host name')
    parser.add_argument('--instanceId', type=str, default=None,
        help='Instance id attached to every record.')
    parser.add_argument('--cephOsdBasePath', type=str, default=None,
        help='Directory holding one <fsid>_<uuid> directory per OSD, used to map devices to OSD ids.')
    parser.add_argument('--grownDefectsThreshold', type=int, default=None,
        help='Grown defect count above which a health alert is raised. Default: 10')
    parser.add_argument('--pendingSectorsThreshold', type=int, default=None,
        help='Pending sector count above which a health alert is raised. Default: 3')
    parser.add_argument('--reallocatedSectorsThreshold', type=int, default=None,
        help='Reallocated sector count above which a health alert is raised. Default: 10')
    parser.add_argument('--lifetimeUsedThreshold', type=int, default=None,
        help='SSD life used percentage above which a lifetime alert is raised. Default: 80')
    parser.add_argument('--testMode', action='store_true', default=None,
        help='Replay fixture files instead of running smartctl.')
    parser.add_argument('--testDataDir', type=str, default=None,
        help='Fixture root directory for test mode. Default: testdata')
    parser.add_argument('--testScenario', type=str, default=None,
        help='Scenario to replay in test mode. Default: healthy')
    parser.add_argument('--testDevices', type=str, default=None,
        help='Comma separated device names to replay in test mode.')
    parser.add_argument('--commandTimeout', type=int, default=None,
        help='Seconds allowed for one smartctl or nvme-cli invocation. Default: 30')
    parser.add_argument('--maxIterations', type=int, default=None,
        help='Maximum number of collection iterations to run before exiting. Default: 0 (run indefinitely).')
    parser.add_argument('--logfile', type=str, default=None,
        help='Path to log file. If not provided, logs to console only.')
    parser.add_argument('--loglevel', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
        help='Log level for both console and file output. Default: INFO')
    return parser


def configure_logging(logfile, loglevel: str) -> None:
    log_level = getattr(logging, loglevel.upper())

    if logfile:
        logfile_dir = os.path.dirname(logfile) if os.path.dirname(logfile) else '.'
        if os.path.exists(logfile_dir) and os.access(logfile_dir, os.W_OK):
            try:
                logging.basicConfig(filename=logfile, level=log_level, format=FORMAT, datefmt=DATEFMT)
                logging.info('Logging to file: ' + logfile)
            except OSError as e:
                logging.basicConfig(level=log_level, format=FORMAT, datefmt=DATEFMT)
                logging.error(f'Failed to configure file logging to {logfile}: {e}')
                logging.warning('Falling back to console logging only')
        else:
            logging.basicConfig(level=log_level, format=FORMAT, datefmt=DATEFMT)
            logging.error(f'Logfile directory {logfile_dir} does not exist or is not writable')
            logging.warning('Falling back to console logging only')
    else:
        logging.basicConfig(level=log_level, format=FORMAT, datefmt=DATEFMT)

    # nats logs connection details at DEBUG
    logging.getLogger("nats").setLevel(level=max(log_level, logging.INFO))


def apply_overrides(settings: Settings, cmd: argparse.Namespace) -> None:
    """Copy explicitly given CLI flags onto the settings."""
    for flag, attribute in CLI_OVERRIDES.items():
        value = getattr(cmd, flag, None)
        if value is not None:
            setattr(settings, attribute, value)
    if cmd.disks is not None:
        settings.disks = split_list(cmd.disks)
    if cmd.testDevices is not None:
        settings.test_devices = split_list(cmd.testDevices)


def main(argv=None) -> int:
    parser = build_parser()
    cmd = parser.parse_args(argv)

    configure_logging(cmd.logfile, cmd.loglevel)
    LOG = logging.getLogger(__name__)

    try:
        if cmd.config is not None:
            settings = Settings(config_file=cmd.config, from_env=False)
        else:
            settings = Settings(from_env=True)
        apply_overrides(settings, cmd)
        settings.validate()
    except ConfigurationError as e:
        LOG.critical(f"Invalid configuration: {e}")
        return 1

    if settings.max_iterations > 0:
        LOG.info(f"Will run for {settings.max_iterations} iterations and then exit")

    adapter = CommandAdapter(
        command_timeout=settings.command_timeout,
        test_mode=settings.test_mode,
        test_data_dir=settings.test_data_dir,
        test_scenario=settings.test_scenario,
    )
    classifier = AlertClassifier(Thresholds(
        grown_defects=settings.grown_defects_threshold,
        pending_sectors=settings.pending_sectors_threshold,
        reallocated_sectors=settings.reallocated_sectors_threshold,
        lifetime_used=settings.lifetime_used_threshold,
    ))
    resolver = StorageUnitResolver(settings.ceph_osd_base_path)
    writer = WriterFactory.create_writer(settings, counter_state=CounterState())

    monitor = DiskHealthMonitor(settings, adapter, writer, normalizer=AttributeNormalizer(),
                                resolver=resolver, classifier=classifier)
    try:
        monitor.start()
    except StartupError as e:
        LOG.critical(f"Startup failed: {e}")
        writer.close()
        return 1
    except Exception as e:
        LOG.critical(f"Failed to start output: {e}")
        writer.close()
        return 1

    monitor.run(settings.max_iterations)
    return 0


if __name__ == '__main__':
    sys.exit(main())
