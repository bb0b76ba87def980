"""
Collectors package for the disk health collector.

Available collectors:
- command_adapter.py: smartctl / nvme-cli execution, device scan and test-mode fixture replay
"""
