import logging
from unittest import mock

import pytest
from prometheus_client import CollectorRegistry

from diskhealth.cache.counter_state import CounterState
from diskhealth.models import CanonicalAttribute, DeviceInfo, NormalizedRecord
from diskhealth.normalize.attributes import AttributeKey as K
from diskhealth.writer.prometheus_writer import PrometheusWriter

LABELS = {'device': '/dev/sda', 'node': 'node-1', 'instance': 'cluster-a', 'osd_id': '3'}


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def writer(registry):
    return PrometheusWriter(registry=registry, start_server=False)


def make_record(**kwargs):
    values = dict(node_name="node-1", instance_id="cluster-a", device="/dev/sda",
                  device_info=DeviceInfo(), capacity_gb=480.0, storage_unit_id="3")
    values.update(kwargs)
    return NormalizedRecord(**values)


def test_gauges(writer, registry):
    record = make_record(temperature_celsius=28, reallocated_sectors=0, pending_sectors=1, ssd_life_used=2)

    assert writer.write({'records': [record], 'events': []}) is True

    assert registry.get_sample_value('disk_temperature_celsius', LABELS) == 28
    assert registry.get_sample_value('disk_reallocated_sectors', LABELS) == 0
    assert registry.get_sample_value('disk_pending_sectors', LABELS) == 1
    assert registry.get_sample_value('ssd_life_used_percentage', LABELS) == 2
    assert registry.get_sample_value('disk_capacity_gb', LABELS) == 480.0


def test_unreported_values_are_not_exported(writer, registry):
    writer.write({'records': [make_record()]})

    assert registry.get_sample_value('disk_temperature_celsius', LABELS) is None
    assert registry.get_sample_value('ssd_life_used_percentage', LABELS) is None
    assert registry.get_sample_value('disk_power_on_hours_total', LABELS) is None
    assert registry.get_sample_value('disk_capacity_gb', LABELS) == 480.0


def test_attribute_gauges(writer, registry):
    record = make_record(attributes={
        K.UDMA_CRC_ERROR_COUNT: CanonicalAttribute("UDMA CRC Error Count", "count", value=100, raw_value=4),
        K.SEEK_ERROR_RATE: CanonicalAttribute("Seek Error Rate", "rate", value=100),
    })

    writer.write({'records': [record]})

    labels = dict(LABELS, attribute='udma_crc_error_count')
    assert registry.get_sample_value('smart_attributes', labels) == 4
    assert registry.get_sample_value('smart_attributes', dict(LABELS, attribute='seek_error_rate')) is None


def test_power_on_hours_counter_survives_reset(writer, registry, caplog):
    for hours in (100, 150):
        writer.write({'records': [make_record(power_on_hours=hours)]})
    assert registry.get_sample_value('disk_power_on_hours_total', LABELS) == 150

    with caplog.at_level(logging.WARNING):
        writer.write({'records': [make_record(power_on_hours=20)]})

    assert registry.get_sample_value('disk_power_on_hours_total', LABELS) == 170
    assert "went backwards" in caplog.text


def test_error_counters(writer, registry):
    writer.write({'records': [make_record(error_counts={'reported_uncorrect': 3, 'udma_crc_error_count': 0})]})
    writer.write({'records': [make_record(error_counts={'reported_uncorrect': 5, 'udma_crc_error_count': 0})]})

    assert registry.get_sample_value('disk_error_counts_total',
                                     dict(LABELS, error_type='reported_uncorrect')) == 5
    assert registry.get_sample_value('disk_error_counts_total',
                                     dict(LABELS, error_type='udma_crc_error_count')) == 0


def test_shared_counter_state(registry):
    state = CounterState()
    state.increment(('/dev/sda', 'power_on_hours'), 90)
    writer = PrometheusWriter(registry=registry, start_server=False, counter_state=state)

    writer.write({'records': [make_record(power_on_hours=100)]})

    assert registry.get_sample_value('disk_power_on_hours_total', LABELS) == 10


def test_injected_empty_counter_state_is_kept(registry):
    state = CounterState()
    writer = PrometheusWriter(registry=registry, start_server=False, counter_state=state)

    writer.write({'records': [make_record(power_on_hours=100)]})

    assert writer.counter_state is state
    assert len(state) == 1


def test_unmapped_device_has_empty_osd_label(writer, registry):
    writer.write({'records': [make_record(storage_unit_id="", temperature_celsius=30)]})

    assert registry.get_sample_value('disk_temperature_celsius', dict(LABELS, osd_id='')) == 30


def test_write_failure_returns_false(writer):
    assert writer.write({'records': [object()]}) is False


def test_server_started_once(registry):
    writer = PrometheusWriter(port=9999, registry=registry)

    with mock.patch('diskhealth.writer.prometheus_writer.start_http_server') as start_http_server:
        writer.start()
        writer.start()

    start_http_server.assert_called_once_with(9999, registry=registry)
    assert writer.server_started is True


def test_server_disabled(writer):
    with mock.patch('diskhealth.writer.prometheus_writer.start_http_server') as start_http_server:
        writer.start()
    start_http_server.assert_not_called()


def test_server_start_failure_raises(registry):
    writer = PrometheusWriter(registry=registry)

    with mock.patch('diskhealth.writer.prometheus_writer.start_http_server', side_effect=OSError("in use")):
        with pytest.raises(OSError):
            writer.start()
    assert writer.server_started is False
