"""
MIG profile resolution

Turns the profile requested in the settings into the layout string passed to
`nvidia-smi mig -cgi`, e.g. "3g.20gb,3g.20gb" for an A100-40GB split in two.

- Known GPU: the request is either an exact profile name ("2g.10gb") or the
  number of slices ("3"). Anything else falls back to the full GPU.
- Unknown GPU: the request must be an exact profile name. The number of
  partitions is derived from the VRAM in the GPU descriptor ("x200.96gb") and
  the 7 compute slices every MIG GPU has.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from migmanager.errors import InvalidProfile
from migmanager.gpu_model import GpuFamily, TOTAL_COMPUTE_SLICES

logger = logging.getLogger('migmanager')

DEFAULT_PROFILE = "1"

# ============================================================
# Known GPU profile tables
# ============================================================

# family -> [(per partition profile, number of partitions), ...]
# The entry with 1 partition is the default.
MIG_PROFILES: Dict[GpuFamily, List[Tuple[str, int]]] = {
    GpuFamily.A100_40GB: [
        ("1g.5gb", 7),
        ("2g.10gb", 3),
        ("3g.20gb", 2),
        ("7g.40gb", 1),
    ],
    GpuFamily.A100_80GB: [
        ("1g.10gb", 7),
        ("2g.20gb", 3),
        ("3g.40gb", 2),
        ("7g.80gb", 1),
    ],
    GpuFamily.H100_80GB: [
        ("1g.10gb", 7),
        ("1g.20gb", 4),
        ("2g.20gb", 3),
        ("3g.40gb", 2),
        ("7g.80gb", 1),
    ],
    GpuFamily.H200_141GB: [
        ("1g.18gb", 7),
        ("1g.35gb", 4),
        ("2g.35gb", 3),
        ("3g.71gb", 2),
        ("7g.141gb", 1),
    ],
}

# ============================================================
# Unknown GPU parsing
# ============================================================

# GPU descriptor, e.g. "a100.40gb" -> total VRAM 40
_GPU_MODEL_RE = re.compile(r"[A-Za-z]\d+\.(\d+)gb")

# MIG profile, e.g. "2g.10gb" -> 2 compute slices, 10 GB. Whole string must match.
_MIG_PROFILE_RE = re.compile(r"(\d+)g\.(\d+)gb")


def layout(profile: str, count: int) -> str:
    """
    Repeat a per partition profile into a layout string

    Examples:
        >>> layout("3g.20gb", 2)
        "3g.20gb,3g.20gb"
    """
    return ",".join([profile] * count)


def resolve_known_gpu_profile(family: GpuFamily, requested: Optional[str]) -> str:
    """
    Layout for a known GPU family

    Args:
        family: any family except GpuFamily.OTHER
        requested: profile name ("2g.10gb") or slice count ("3"), case sensitive.
            None or an unknown value selects the full GPU.

    Returns:
        Layout string for `nvidia-smi mig -cgi`
    """
    profiles = MIG_PROFILES[family]
    for profile, count in profiles:
        if requested == profile or requested == str(count):
            return layout(profile, count)

    default_profile, default_count = next(p for p in profiles if str(p[1]) == DEFAULT_PROFILE)
    return layout(default_profile, default_count)


def resolve_unknown_gpu_profile(gpu: str, mig_profile: str) -> str:
    """
    Layout for a GPU family that isn't in MIG_PROFILES

    Number of partitions = min(total VRAM // VRAM per partition,
                               7 // compute slices per partition)

    Args:
        gpu: GPU descriptor carrying the total VRAM, e.g. "a100.40gb"
        mig_profile: exact profile, e.g. "1g.5gb" (slice counts are not accepted)

    Returns:
        Layout string, e.g. "1g.5gb" repeated 7 times for ("a100.40gb", "1g.5gb")

    Raises:
        InvalidProfile: profile or descriptor doesn't parse, a number is zero,
            or the profile doesn't fit in the GPU at all
    """
    # A single character is a slice count, which means nothing without a known GPU
    if len(mig_profile) <= 1:
        raise InvalidProfile(f"Invalid MIG Profile provided in the Settings: '{mig_profile}'")

    gpu_match = _GPU_MODEL_RE.search(gpu)
    if not gpu_match:
        raise InvalidProfile(f"Invalid GPU provided in the Settings: '{gpu}'")
    profile_match = _MIG_PROFILE_RE.fullmatch(mig_profile)
    if not profile_match:
        raise InvalidProfile(f"Invalid MIG Profile provided in the Settings: '{mig_profile}'")

    gpu_ram = int(gpu_match.group(1))
    compute_slices = int(profile_match.group(1))
    slice_ram = int(profile_match.group(2))

    if gpu_ram == 0 or slice_ram == 0 or compute_slices == 0:
        raise InvalidProfile(
            f"Invalid MIG Profile provided in the Settings: '{mig_profile}' for GPU '{gpu}'"
        )

    num_slices = min(gpu_ram // slice_ram, TOTAL_COMPUTE_SLICES // compute_slices)
    if num_slices == 0:
        raise InvalidProfile(f"MIG Profile '{mig_profile}' does not fit in GPU '{gpu}'")

    return layout(mig_profile, num_slices)


def resolve(family: GpuFamily, requested: Optional[str], gpu: Optional[str] = None) -> str:
    """
    Single entry point for profile resolution.

    For GpuFamily.OTHER, `gpu` is the descriptor from the settings key.
    """
    if family is GpuFamily.OTHER:
        if gpu is None or requested is None:
            raise InvalidProfile("Unknown GPU needs both a GPU descriptor and an exact MIG Profile")
        return resolve_unknown_gpu_profile(gpu, requested)
    return resolve_known_gpu_profile(family, requested)
