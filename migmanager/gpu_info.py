"""
GPU inventory: MIG state classification and nvidia-smi query parsing.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from migmanager.errors import MalformedInventory
from migmanager.gpu_model import GpuFamily, get_gpu_model


class MigState(Enum):
    UNSUPPORTED = "unsupported"
    ENABLED = "enabled"
    DISABLED = "disabled"
    TRANSITION = "transition"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MigGpu:
    """One physical GPU as reported by nvidia-smi"""
    model: GpuFamily
    state: MigState

    def is_disabled(self) -> bool:
        return self.state is MigState.DISABLED

    def is_enabled(self) -> bool:
        return self.state is MigState.ENABLED

    def is_unsupported(self) -> bool:
        return self.state is MigState.UNSUPPORTED


def get_gpu_state(current_state: str, next_state: str) -> MigState:
    """
    (mig.mode.current, mig.mode.pending) -> MigState

    Examples:
        >>> get_gpu_state("Enabled", "Disabled")
        <MigState.TRANSITION: 'transition'>
        >>> get_gpu_state("[N/A]", "[N/A]")
        <MigState.UNSUPPORTED: 'unsupported'>
    """
    if current_state != next_state:
        return MigState.TRANSITION
    if current_state == "Enabled":
        return MigState.ENABLED
    if current_state == "Disabled":
        return MigState.DISABLED
    if current_state == "[N/A]":
        return MigState.UNSUPPORTED
    return MigState.UNKNOWN


def parse_gpu_info(text: str) -> List[MigGpu]:
    """
    Parse `nvidia-smi --query-gpu=pci.device_id,mig.mode.current,mig.mode.pending
    --format=csv,noheader`

    Args:
        text: command output, one GPU per line

    Returns:
        MigGpu list in nvidia-smi order

    Example output:
        0x20B010DE, Disabled, Disabled
        0x20B010DE, Enabled, Enabled
    """
    gpu_info: List[MigGpu] = []
    for row in text.splitlines():
        if not row.strip():
            continue
        parts = [part.strip() for part in row.split(", ")]
        if len(parts) != 3:
            raise MalformedInventory(row)

        pci_device_id, current_state, next_state = parts
        gpu_info.append(MigGpu(
            model=get_gpu_model(pci_device_id),
            state=get_gpu_state(current_state, next_state),
        ))
    return gpu_info
