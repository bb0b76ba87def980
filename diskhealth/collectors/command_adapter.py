"""
Command adapter for smartctl and nvme-cli.

Runs the diagnostic tools with JSON output and returns protocol tagged raw records.
In test mode the same records are replayed from fixture files laid out as
``<test_data_dir>/scenarios/<scenario>/<device>.json`` and no process is spawned.
"""

import json
import logging
import os
import shutil
import subprocess
from typing import Any, Callable, Dict, List, Optional

from diskhealth.models import Protocol, RawDeviceRecord

LOG = logging.getLogger(__name__)

SMARTCTL = "smartctl"
NVME_CLI = "nvme"

SMARTCTL_ARGS = [
    "--json", "--info", "--health", "--attributes",
    "--tolerance=verypermissive", "--nocheck=standby", "--format=brief", "--log=error",
]

# smartctl exit status is a bit mask; bit 0 is a command line error, bit 1 a device open failure
SMARTCTL_FATAL_MASK = 0b11

NVME_COMPANION_SUFFIXES = (".id-ctrl.json", ".error-log.json")


class CollectionError(Exception):
    """Raised when a device cannot be collected for this cycle."""

    def __init__(self, device: str, message: str):
        super().__init__(f"{device}: {message}")
        self.device = device
        self.message = message


class CommandAdapter:
    """
    Collects raw SMART data for one device at a time.

    Args:
        command_timeout: Seconds allowed for a single external command
        test_mode: Replay fixtures instead of running smartctl / nvme-cli
        test_data_dir: Fixture root directory
        test_scenario: Scenario subdirectory under ``scenarios/``
        runner: Callable with the ``subprocess.run`` signature
    """

    def __init__(self, command_timeout: int = 30, test_mode: bool = False,
                 test_data_dir: str = "testdata", test_scenario: str = "healthy",
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.command_timeout = command_timeout
        self.test_mode = test_mode
        self.test_data_dir = test_data_dir
        self.test_scenario = test_scenario
        self.runner = runner
        self._nvme_cli_available: Optional[bool] = None

    @property
    def scenario_dir(self) -> str:
        return os.path.join(self.test_data_dir, "scenarios", self.test_scenario)

    def smartctl_available(self) -> bool:
        """True when smartctl is on PATH. Always True in test mode."""
        return self.test_mode or shutil.which(SMARTCTL) is not None

    def nvme_cli_available(self) -> bool:
        """True when nvme-cli is on PATH (or test mode). Checked once per adapter."""
        if self.test_mode:
            return True
        if self._nvme_cli_available is None:
            self._nvme_cli_available = shutil.which(NVME_CLI) is not None
            if not self._nvme_cli_available:
                LOG.info("nvme-cli not found, NVMe devices will be collected with smartctl only")
        return self._nvme_cli_available

    def scan_devices(self) -> List[str]:
        """
        Discover SMART capable devices.

        Uses ``smartctl --scan-open`` on real hardware. In test mode every fixture in
        the scenario directory (companion nvme-cli files excluded) is a device.
        """
        if self.test_mode:
            if not os.path.isdir(self.scenario_dir):
                LOG.warning(f"Test scenario directory not found: {self.scenario_dir}")
                return []
            devices = []
            for name in sorted(os.listdir(self.scenario_dir)):
                if not name.endswith(".json") or name.endswith(NVME_COMPANION_SUFFIXES):
                    continue
                devices.append(name[:-len(".json")])
            LOG.info(f"Found {len(devices)} devices in test scenario '{self.test_scenario}'")
            return devices

        try:
            output = self._run_json([SMARTCTL, "--scan-open", "-j"], "scan")
        except CollectionError as e:
            LOG.error(f"Device scan failed: {e}")
            return []
        devices = [d.get('name') for d in output.get('devices') or [] if d.get('name')]
        LOG.info(f"smartctl scan found {len(devices)} devices")
        return devices

    def collect(self, device: str) -> RawDeviceRecord:
        """
        Collect one device.

        Args:
            device: Device path, or bare device name in test mode

        Returns:
            RawDeviceRecord

        Raises:
            CollectionError: The device could not be read this cycle
        """
        if self.test_mode:
            payload = self._load_fixture(device)
        else:
            payload = self._run_smartctl(device)

        protocol = Protocol.from_smartctl(payload)
        if protocol is None:
            raise CollectionError(device, "smartctl output does not report a supported protocol")

        info = payload.get('device') or {}
        device_name = info.get('name') or device
        nvme_controller = None
        nvme_error_log = None
        if protocol == Protocol.NVME and self.nvme_cli_available():
            nvme_controller = self._nvme_companion(device, "id-ctrl")
            nvme_error_log = self._nvme_companion(device, "error-log")

        return RawDeviceRecord(
            protocol=protocol,
            device=device_name,
            info_name=info.get('info_name') or device_name,
            payload=payload,
            nvme_controller=nvme_controller,
            nvme_error_log=nvme_error_log,
        )

    def _run_smartctl(self, device: str) -> Dict[str, Any]:
        return self._run_json([SMARTCTL] + SMARTCTL_ARGS + [device], device, exit_mask=SMARTCTL_FATAL_MASK)

    def _nvme_companion(self, device: str, subcommand: str) -> Optional[Dict[str, Any]]:
        """Fetch nvme-cli output. Failure is logged and returns None."""
        try:
            if self.test_mode:
                path = os.path.join(self.scenario_dir, f"{os.path.basename(device)}.{subcommand}.json")
                if not os.path.exists(path):
                    LOG.debug(f"No nvme {subcommand} fixture for {device}")
                    return None
                return self._read_json(path, device)
            return self._run_json([NVME_CLI, subcommand, device, "-o", "json"], device)
        except CollectionError as e:
            LOG.warning(f"nvme {subcommand} failed for {device}, continuing with smartctl data: {e.message}")
            return None

    def _run_json(self, cmd: List[str], device: str, exit_mask: Optional[int] = None) -> Dict[str, Any]:
        LOG.debug(f"Running {' '.join(cmd)}")
        try:
            proc = self.runner(cmd, capture_output=True, text=True, timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            raise CollectionError(device, f"{cmd[0]} timed out after {self.command_timeout}s")
        except OSError as e:
            raise CollectionError(device, f"cannot run {cmd[0]}: {e}")

        if exit_mask is not None and proc.returncode & exit_mask:
            raise CollectionError(device, f"{cmd[0]} exited with status {proc.returncode}: "
                                          f"{(proc.stderr or '').strip()}")
        if not (proc.stdout or '').strip():
            raise CollectionError(device, (proc.stderr or '').strip() or f"{cmd[0]} returned no output")
        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError:
            raise CollectionError(device, f"{cmd[0]} returned non-JSON output")

    def _load_fixture(self, device: str) -> Dict[str, Any]:
        path = os.path.join(self.scenario_dir, f"{os.path.basename(device)}.json")
        if not os.path.exists(path):
            raise CollectionError(device, f"test fixture not found: {path}")
        return self._read_json(path, device)

    @staticmethod
    def _read_json(path: str, device: str) -> Dict[str, Any]:
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CollectionError(device, f"cannot read {path}: {e}")
