import asyncio
import json
import time
from unittest import mock

import pytest

from diskhealth.models import AlertEvent
from diskhealth.writer.nats_writer import NatsWriter


class FakeNatsClient:
    def __init__(self):
        self.published = []
        self.flushed = 0
        self.drained = False

    async def publish(self, subject, payload):
        self.published.append((subject, payload))

    async def flush(self):
        self.flushed += 1

    async def drain(self):
        self.drained = True


def make_event(device="/dev/sda", severity="info"):
    return AlertEvent(node_name="node-1", instance_id="cluster-a", device=device, event_type="health",
                      severity=severity, message="SMART data collected successfully.",
                      details={'PowerOnHours': "100"})


@pytest.fixture
def client():
    return FakeNatsClient()


@pytest.fixture
def writer(client):
    writer = NatsWriter("nats://localhost:4222", "osd.disk.health", timeout=1, client=client)
    yield writer
    writer.close(timeout_seconds=1)


def test_publishes_one_message_per_event(writer, client):
    events = [make_event("/dev/sda"), make_event("/dev/sdb", severity="warning")]

    assert writer.write({'records': [], 'events': events}) is True

    assert [subject for subject, _ in client.published] == ["osd.disk.health"] * 2
    first = json.loads(client.published[0][1].decode('utf-8'))
    assert first == events[0].to_dict()
    assert json.loads(client.published[1][1])['severity'] == "warning"
    assert client.flushed == 1


def test_no_events_is_a_noop(writer, client):
    assert writer.write({'records': [], 'events': []}) is True
    assert client.published == []
    assert client.flushed == 0


def test_failed_publish_does_not_stop_the_rest():
    class FlakyClient(FakeNatsClient):
        calls = 0

        async def publish(self, subject, payload):
            self.calls += 1
            if self.calls == 1:
                raise ConnectionError("connection lost")
            await super().publish(subject, payload)

    client = FlakyClient()
    writer = NatsWriter("nats://localhost:4222", "osd.disk.health", timeout=1, client=client)

    result = writer.write({'events': [make_event("/dev/sda"), make_event("/dev/sdb")]})
    writer.close(timeout_seconds=1)

    assert result is False
    assert len(client.published) == 1
    assert json.loads(client.published[0][1])['device'] == "/dev/sdb"


def test_write_without_connection():
    writer = NatsWriter("nats://localhost:4222", "osd.disk.health")
    try:
        assert writer.write({'events': [make_event()]}) is False
    finally:
        writer.close(timeout_seconds=1)


def test_start_skips_connect_for_injected_client(writer):
    with mock.patch('diskhealth.writer.nats_writer.nats.connect') as connect:
        writer.start()
    connect.assert_not_called()


def test_start_connects():
    client = FakeNatsClient()
    writer = NatsWriter("nats://nats:4222", "osd.disk.health", timeout=3)

    with mock.patch('diskhealth.writer.nats_writer.nats.connect', new=mock.AsyncMock(return_value=client)) as connect:
        writer.start()

    connect.assert_awaited_once_with(servers=["nats://nats:4222"], connect_timeout=3, allow_reconnect=True)
    assert writer.write({'events': [make_event()]}) is True
    writer.close(timeout_seconds=1)
    assert client.drained is True


def test_start_failure_raises():
    writer = NatsWriter("nats://nats:4222", "osd.disk.health")

    with mock.patch('diskhealth.writer.nats_writer.nats.connect',
                    new=mock.AsyncMock(side_effect=OSError("connection refused"))):
        with pytest.raises(OSError):
            writer.start()
    writer.close(timeout_seconds=1)


def test_close_drains(client):
    writer = NatsWriter("nats://localhost:4222", "osd.disk.health", client=client)
    writer.close(timeout_seconds=1)
    assert client.drained is True


def test_start_gives_up_after_timeout():
    async def never_connects(**kwargs):
        await asyncio.sleep(3600)

    writer = NatsWriter("nats://nats:4222", "osd.disk.health", timeout=1)

    started = time.monotonic()
    with mock.patch('diskhealth.writer.nats_writer.nats.connect', new=never_connects):
        with pytest.raises(asyncio.TimeoutError):
            writer.start()
    writer.close(timeout_seconds=1)

    assert time.monotonic() - started < 5


def test_start_unreachable_server_fails_within_timeout():
    writer = NatsWriter("nats://127.0.0.1:1", "osd.disk.health", timeout=1)

    started = time.monotonic()
    with pytest.raises(Exception):
        writer.start()
    writer.close(timeout_seconds=1)

    assert time.monotonic() - started < 10
