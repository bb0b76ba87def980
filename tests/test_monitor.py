import logging
from unittest import mock

import pytest

from diskhealth.collectors.command_adapter import CollectionError, CommandAdapter
from diskhealth.monitor import DiskHealthMonitor, StartupError
from diskhealth.writer.base import Writer


class RecordingWriter(Writer):
    def __init__(self, result=True):
        self.result = result
        self.cycles = []
        self.started = False
        self.closed_with = None

    def start(self):
        self.started = True

    def write(self, data, loop_iteration=1):
        self.cycles.append((loop_iteration, data))
        return self.result

    def close(self, timeout_seconds=90, force_exit_on_timeout=False):
        self.closed_with = timeout_seconds


@pytest.fixture
def writer():
    return RecordingWriter()


def make_monitor(settings, writer, adapter=None, **kwargs):
    adapter = adapter or CommandAdapter(test_mode=settings.test_mode, test_data_dir=settings.test_data_dir,
                                        test_scenario=settings.test_scenario)
    return DiskHealthMonitor(settings, adapter, writer, sleep=mock.Mock(), **kwargs)


def test_single_healthy_iteration(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(test_devices=["sda"]), writer)
    monitor.start()

    completed = monitor.run(max_iterations=1)

    assert completed == 1
    assert writer.started is True
    assert writer.closed_with == 1
    loop_iteration, data = writer.cycles[0]
    assert loop_iteration == 1
    assert [record.device for record in data['records']] == ["/dev/sda"]
    assert [event.severity for event in data['events']] == ['info']
    assert data['records'][0].node_name == "node-1"
    assert data['events'][0].instance_id == "cluster-a"
    monitor.sleep.assert_not_called()


def test_wildcard_scans_scenario(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(disks=["*"], wildcard=True), writer)

    assert monitor.discover_devices() == ["nvme0", "sda", "sdb"]
    data = monitor.run_cycle()

    assert len(data['records']) == 3
    assert all(event.severity == 'info' for event in data['events'])


def test_configured_disks_used_without_overrides(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(disks=["sdb"]), writer)
    assert monitor.discover_devices() == ["sdb"]


def test_test_devices_win_in_test_mode(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(disks=["*"], wildcard=True, test_devices=["nvme0"]), writer)
    assert monitor.discover_devices() == ["nvme0"]


def test_no_devices_is_fatal(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(disks=["*"], wildcard=True, test_scenario="no_such_scenario"), writer)

    with pytest.raises(StartupError):
        monitor.start()
    assert writer.started is False


def test_missing_smartctl_is_fatal(monitor_settings, writer):
    adapter = mock.Mock(spec=CommandAdapter)
    adapter.smartctl_available.return_value = False
    monitor = make_monitor(monitor_settings(test_mode=False), writer, adapter=adapter)

    with pytest.raises(StartupError, match="smartctl"):
        monitor.start()


def test_failing_device_is_skipped(monitor_settings, writer, caplog):
    monitor = make_monitor(monitor_settings(test_devices=["sda", "sdz", "sdb"]), writer)
    monitor.discover_devices()

    with caplog.at_level(logging.ERROR):
        data = monitor.run_cycle()

    assert [record.device for record in data['records']] == ["/dev/sda", "/dev/sdb"]
    assert len(data['events']) == 2
    assert "Failed to collect SMART data for sdz" in caplog.text


def test_processing_error_is_isolated(monitor_settings, writer, caplog):
    classifier = mock.Mock()
    classifier.classify.side_effect = [RuntimeError("boom"), mock.sentinel.event]
    monitor = make_monitor(monitor_settings(test_devices=["sda", "sdb"]), writer, classifier=classifier)
    monitor.discover_devices()

    with caplog.at_level(logging.ERROR):
        data = monitor.run_cycle()

    assert data['events'] == [mock.sentinel.event]
    assert [record.device for record in data['records']] == ["/dev/sdb"]
    assert "Failed to process SMART data for sda" in caplog.text


def test_storage_unit_id_is_attached(monitor_settings, writer):
    resolver = mock.Mock()
    resolver.resolve.return_value = "12"
    monitor = make_monitor(monitor_settings(test_devices=["sda"]), writer, resolver=resolver)
    monitor.discover_devices()

    data = monitor.run_cycle()

    resolver.resolve.assert_called_once_with("/dev/sda")
    assert data['records'][0].storage_unit_id == "12"
    assert data['events'][0].details['StorageUnitId'] == "12"


def test_write_failure_does_not_stop_loop(monitor_settings, caplog):
    writer = RecordingWriter(result=False)
    monitor = make_monitor(monitor_settings(test_devices=["sda"]), writer)
    monitor.discover_devices()

    with caplog.at_level(logging.ERROR):
        assert monitor.run(max_iterations=2) == 2
    assert "Failed to write data for iteration 1" in caplog.text


def test_sleeps_between_iterations(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(test_devices=["sda"], interval=30), writer)
    monitor.discover_devices()

    assert monitor.run(max_iterations=3) == 3

    assert [iteration for iteration, _ in writer.cycles] == [1, 2, 3]
    assert monitor.sleep.call_count == 2
    assert 0 < monitor.sleep.call_args.args[0] <= 30


def test_interrupt_closes_writer(monitor_settings, writer):
    monitor = make_monitor(monitor_settings(test_devices=["sda"]), writer)
    monitor.discover_devices()
    monitor.sleep.side_effect = KeyboardInterrupt

    assert monitor.run(max_iterations=0) == 1
    assert writer.closed_with == 1


def test_collection_error_carries_device():
    error = CollectionError("/dev/sda", "timed out")
    assert str(error) == "/dev/sda: timed out"
