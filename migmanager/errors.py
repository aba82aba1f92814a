"""
Error types raised by nvidia-migmanager.

Every error aborts the current run. The CLI turns them into a single message
on stderr and a non-zero exit code.
"""
from __future__ import annotations

from typing import List, Optional


class MigManagerError(RuntimeError):
    """Base class for all nvidia-migmanager errors"""


class InvalidHardwareId(MigManagerError):
    """PCI device id does not belong to an NVIDIA device"""

    def __init__(self, pci_device_id: str):
        self.pci_device_id = pci_device_id
        super().__init__(f"Nvidia GPU not available: unexpected PCI device id '{pci_device_id}'")


class MalformedInventory(MigManagerError):
    """nvidia-smi returned a row we cannot parse"""

    def __init__(self, row: str):
        self.row = row
        super().__init__(f"nvidia-smi command failed or has incorrect output format: '{row}'")


class InvalidProfile(MigManagerError):
    """MIG profile in the settings cannot be turned into a layout"""


class HeterogeneousGpu(MigManagerError):
    def __init__(self):
        super().__init__("MIG is unsupported because multiple variants of Nvidia GPU present.")


class NoGpu(MigManagerError):
    def __init__(self):
        super().__init__("Nvidia GPU not available.")


class ExternalCommandFailure(MigManagerError):
    """External tool could not be run or exited non-zero"""

    def __init__(
        self,
        cmd: List[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        reason: Optional[str] = None,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        if reason is None:
            reason = f"exit_code={returncode} - stderr: {stderr.strip()}"
        super().__init__(f"'{' '.join(cmd)}' failed - {reason}")


class ConfigReadFailure(MigManagerError):
    def __init__(self, config_path: str, source: Exception):
        self.config_path = config_path
        super().__init__(f"Failed to read settings from config at {config_path}: {source}")


class ConfigParseFailure(MigManagerError):
    def __init__(self, config_path: str, source: object):
        self.config_path = config_path
        super().__init__(f"Failed to deserialize settings from config at {config_path}: {source}")


class MarkerWriteFailure(MigManagerError):
    def __init__(self, marker_path: str, source: Exception):
        self.marker_path = marker_path
        super().__init__(f"Failed to write marker file at {marker_path}. Error: {source}")
