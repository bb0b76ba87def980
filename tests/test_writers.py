import io
import json
from types import SimpleNamespace
from unittest import mock

from diskhealth.cache.counter_state import CounterState
from diskhealth.models import DeviceInfo, NormalizedRecord
from diskhealth.writer.base import Writer
from diskhealth.writer.factory import WriterFactory
from diskhealth.writer.multi_writer import MultiWriter
from diskhealth.writer.nats_writer import NatsWriter
from diskhealth.writer.prometheus_writer import PrometheusWriter
from diskhealth.writer.stdout_writer import StdoutWriter


def make_settings(**kwargs):
    values = dict(prometheus=False, prometheus_port=8080, nats_url="", nats_subject="osd.disk.health",
                  nats_timeout=5)
    values.update(kwargs)
    return SimpleNamespace(**values)


def make_record(device="/dev/sda"):
    return NormalizedRecord(node_name="node-1", instance_id="cluster-a", device=device,
                            device_info=DeviceInfo(vendor="Intel"), temperature_celsius=30)


class TestFactory:
    def test_stdout_when_no_sink(self):
        assert isinstance(WriterFactory.create_writer(make_settings()), StdoutWriter)

    def test_prometheus_only(self):
        state = CounterState()
        writer = WriterFactory.create_writer(make_settings(prometheus=True, prometheus_port=9101), counter_state=state)

        assert isinstance(writer, PrometheusWriter)
        assert writer.port == 9101
        assert writer.counter_state is state

    def test_nats_only(self):
        writer = WriterFactory.create_writer(make_settings(nats_url="nats://nats:4222"))
        try:
            assert isinstance(writer, NatsWriter)
            assert writer.subject == "osd.disk.health"
        finally:
            writer.close(timeout_seconds=1)

    def test_both_sinks(self):
        writer = WriterFactory.create_writer(make_settings(prometheus=True, nats_url="nats://nats:4222"))
        try:
            assert isinstance(writer, MultiWriter)
            assert [type(w) for w in writer.writers] == [PrometheusWriter, NatsWriter]
        finally:
            writer.close(timeout_seconds=1)


def test_stdout_writer_prints_one_line_per_cycle():
    stream = io.StringIO()
    writer = StdoutWriter(stream)

    assert writer.write({'records': [make_record("/dev/sda"), make_record("/dev/sdb")], 'events': []}) is True
    assert writer.write({'records': []}, loop_iteration=2) is True

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert [record['device'] for record in first] == ["/dev/sda", "/dev/sdb"]
    assert first[0]['device_info']['vendor'] == "Intel"
    assert json.loads(lines[1]) == []


def test_multi_writer_isolates_failures():
    good = mock.Mock(spec=Writer)
    good.write.return_value = True
    bad = mock.Mock(spec=Writer)
    bad.write.side_effect = RuntimeError("down")
    bad.close.side_effect = RuntimeError("down")
    writer = MultiWriter([bad, good])

    assert writer.write({'records': []}, 3) is False
    good.write.assert_called_once_with({'records': []}, 3)

    writer.close(timeout_seconds=2)
    good.close.assert_called_once_with(2, False)


def test_multi_writer_start_propagates():
    first = mock.Mock(spec=Writer)
    second = mock.Mock(spec=Writer)
    MultiWriter([first, second]).start()

    first.start.assert_called_once_with()
    second.start.assert_called_once_with()
