"""
GPU model identification.

nvidia-smi reports each GPU's PCI device id as "0x<device><vendor>", e.g.
"0x20B010DE" for an A100-40GB. The device half tells us the model, the vendor
half has to be NVIDIA's.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from migmanager.errors import InvalidHardwareId

logger = logging.getLogger('migmanager')

NVIDIA_VENDOR_ID = "10DE"

# Every MIG capable GPU exposes 7 compute slices
TOTAL_COMPUTE_SLICES = 7


class GpuFamily(Enum):
    A100_40GB = "a100.40gb"
    A100_80GB = "a100.80gb"
    H100_80GB = "h100.80gb"
    H200_141GB = "h200.141gb"
    OTHER = "other"


@dataclass(frozen=True)
class GpuSpec:
    """Static hardware facts for one known GPU family"""
    key: str                  # key used under `profile` in the settings
    name: str                 # human readable, used in logs
    total_vram_gb: int
    requires_full_reset: bool  # Ampere: MIG mode change needs a GPU reset (reboot)


GPU_SPECS: Dict[GpuFamily, GpuSpec] = {
    GpuFamily.A100_40GB: GpuSpec("a100.40gb", "A100-40GB", 40, True),
    GpuFamily.A100_80GB: GpuSpec("a100.80gb", "A100-80GB", 80, True),
    GpuFamily.H100_80GB: GpuSpec("h100.80gb", "H100-80GB", 80, False),
    GpuFamily.H200_141GB: GpuSpec("h200.141gb", "H200-141GB", 141, False),
}

# PCI device id prefix -> family
PCI_DEVICE_PREFIXES: List[Tuple[str, GpuFamily]] = [
    ("0x20B0", GpuFamily.A100_40GB),
    ("0x20B2", GpuFamily.A100_80GB),
    ("0x20B5", GpuFamily.A100_80GB),
    ("0x2330", GpuFamily.H100_80GB),
    ("0x2321", GpuFamily.H100_80GB),
    ("0x2331", GpuFamily.H100_80GB),
    ("0x2339", GpuFamily.H100_80GB),
    ("0x2335", GpuFamily.H200_141GB),
    ("0x233B", GpuFamily.H200_141GB),
    ("0x2348", GpuFamily.H200_141GB),
]


def get_gpu_model(pci_device_id: str) -> GpuFamily:
    """
    PCI device id -> GPU family

    Args:
        pci_device_id: e.g. "0x233010DE"

    Returns:
        Known family, or GpuFamily.OTHER for an NVIDIA device we don't know

    Raises:
        InvalidHardwareId: vendor is not NVIDIA

    Examples:
        >>> get_gpu_model("0x20B010DE")
        <GpuFamily.A100_40GB: 'a100.40gb'>
        >>> get_gpu_model("0x26B510DE")
        <GpuFamily.OTHER: 'other'>
    """
    if not pci_device_id.endswith(NVIDIA_VENDOR_ID):
        raise InvalidHardwareId(pci_device_id)

    for prefix, family in PCI_DEVICE_PREFIXES:
        if pci_device_id.startswith(prefix):
            logger.info(f"Found NVIDIA {GPU_SPECS[family].name} GPU.")
            return family

    logger.warning("Found NVIDIA Device but couldn't confirm variant.")
    return GpuFamily.OTHER


def requires_full_reset(family: GpuFamily) -> bool:
    """True if leaving the MIG transitional state needs a GPU reset"""
    spec = GPU_SPECS.get(family)
    return spec is not None and spec.requires_full_reset


def known_gpu_keys() -> List[str]:
    """Settings keys of every known GPU family"""
    return [spec.key for spec in GPU_SPECS.values()]
