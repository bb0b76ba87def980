import os
from types import SimpleNamespace

import pytest

from diskhealth.collectors.command_adapter import CommandAdapter
from diskhealth.models import Protocol, RawDeviceRecord

TESTDATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "testdata")


@pytest.fixture
def scenario_adapter():
    """Factory for test-mode adapters replaying a named scenario."""
    def _make(scenario="healthy"):
        return CommandAdapter(test_mode=True, test_data_dir=TESTDATA_DIR, test_scenario=scenario)
    return _make


@pytest.fixture
def ata_record():
    """Build an ATA RawDeviceRecord from (name, value, worst, thresh, raw) rows."""
    def _make(rows, device="/dev/sda", **extra):
        table = [
            {"id": i, "name": name, "value": value, "worst": worst, "thresh": thresh,
             "raw": {"value": raw, "string": str(raw)}}
            for i, (name, value, worst, thresh, raw) in enumerate(rows, start=1)
        ]
        payload = {
            "device": {"name": device, "info_name": device, "type": "sat", "protocol": "ATA"},
            "model_name": "TEST MODEL",
            "rotation_rate": 0,
            "ata_smart_attributes": {"table": table},
        }
        payload.update(extra)
        return RawDeviceRecord(protocol=Protocol.ATA, device=device, info_name=device, payload=payload)
    return _make


@pytest.fixture
def monitor_settings():
    def _make(**overrides):
        values = dict(
            test_mode=True,
            test_data_dir=TESTDATA_DIR,
            test_scenario="healthy",
            test_devices=[],
            disks=["sda"],
            wildcard=False,
            interval=1,
            node_name="node-1",
            instance_id="cluster-a",
            ceph_osd_base_path="",
            nats_timeout=1,
        )
        values.update(overrides)
        return SimpleNamespace(**values)
    return _make
