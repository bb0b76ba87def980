import json
import os

import pytest

from diskhealth import main as main_module

TESTDATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "testdata")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("DISKS", "NATS_URL", "PROMETHEUS", "TEST_MODE", "TEST_DEVICES", "CEPH_OSD_BASE_PATH"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def test_parser_defaults_leave_settings_alone():
    cmd = main_module.build_parser().parse_args([])

    assert all(getattr(cmd, flag) is None for flag in main_module.CLI_OVERRIDES)
    assert cmd.loglevel == 'INFO'


def test_test_mode_run_writes_records(capsys):
    exit_code = main_module.main([
        "--testMode", "--testDataDir", TESTDATA_DIR, "--testScenario", "healthy",
        "--testDevices", "sda,sdb", "--maxIterations", "1", "--intervalTime", "1",
        "--nodeName", "node-7", "--instanceId", "cluster-a",
    ])

    assert exit_code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    records = json.loads(lines[-1])
    assert [record['device'] for record in records] == ["/dev/sda", "/dev/sdb"]
    assert records[0]['node_name'] == "node-7"
    assert records[0]['ssd_life_used'] == 2
    assert records[1]['device_info']['product'] == "Exos7E8"


def test_config_file_run(tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text(
        "disks: '*'\n"
        "test_mode: true\n"
        f"test_data_dir: {TESTDATA_DIR}\n"
        "test_scenario: worn_ssd\n"
        "max_iterations: 1\n"
    )

    assert main_module.main(["--config", str(config)]) == 0
    records = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert records[0]['ssd_life_used'] == 91


def test_invalid_threshold_exits_with_error():
    assert main_module.main(["--lifetimeUsedThreshold", "150"]) == 1


def test_missing_config_file_exits_with_error(tmp_path):
    assert main_module.main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_no_devices_exits_with_error():
    assert main_module.main([
        "--testMode", "--testDataDir", TESTDATA_DIR, "--testScenario", "no_such_scenario", "--disks", "*",
    ]) == 1


def test_overrides():
    cmd = main_module.build_parser().parse_args(["--disks", "/dev/sda, /dev/sdb", "--prometheus",
                                                 "--prometheusPort", "9200", "--reallocatedSectorsThreshold", "4"])
    settings = main_module.Settings(from_env=True)

    main_module.apply_overrides(settings, cmd)

    assert settings.disks == ["/dev/sda", "/dev/sdb"]
    assert settings.prometheus is True
    assert settings.prometheus_port == 9200
    assert settings.reallocated_sectors_threshold == 4
    assert settings.interval == 10
