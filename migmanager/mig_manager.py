"""
MIG Manager

Reconciles the MIG settings with the GPUs of the instance:

- strategy "mig": enable MIG mode where it is disabled, then create the
  partitions of the configured profile
- anything else: disable MIG mode where it is enabled

A100 GPUs only leave the transitional MIG state after a GPU reset. For them
the mode change is followed by a reboot-required marker, and the profile is
applied on the next boot (by which time `reboot-if-required` has rebooted the
host).

Each run: one inventory query, at most one mode change, at most one profile.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from migmanager.errors import HeterogeneousGpu, InvalidProfile, NoGpu
from migmanager.gpu_info import MigGpu
from migmanager.gpu_model import GPU_SPECS, GpuFamily, known_gpu_keys, requires_full_reset
from migmanager.mig_config import NvidiaMigConfig
from migmanager.mig_profile import DEFAULT_PROFILE, resolve
from migmanager.nvidia_smi import NvidiaSmi
from migmanager.reboot_marker import RebootMarker

logger = logging.getLogger('migmanager')

REBOOT_POLL_INTERVAL = 5  # seconds


@dataclass
class ReconcileResult:
    """What a run did"""
    mig_mode: Optional[bool] = None   # True/False: MIG mode was enabled/disabled
    profile: Optional[str] = None     # layout passed to nvidia-smi
    reboot_required: bool = False


def get_instance_gpu(gpu_info: List[MigGpu]) -> GpuFamily:
    """
    The GPU family of the instance

    Raises:
        NoGpu: empty inventory
        HeterogeneousGpu: more than one family present
    """
    if not gpu_info:
        raise NoGpu()

    reference_gpu_model = gpu_info[0].model
    if any(gpu.model != reference_gpu_model for gpu in gpu_info):
        raise HeterogeneousGpu()
    return reference_gpu_model


def is_fabric_manager_compatible(mig_settings: NvidiaMigConfig, gpu_info: List[MigGpu]) -> bool:
    """
    Fabric Manager can't run next to MIG.

    Returns:
        False if MIG is requested and any GPU has MIG enabled or in transition
    """
    if mig_settings.is_mig():
        for gpu in gpu_info:
            if not gpu.is_unsupported():
                logger.warning("MIG mode is Enabled. Disabling Fabric Manager ...")
                return False
    return True


class MigManager:
    """
    Args:
        smi: runs nvidia-smi / systemctl
        marker: the reboot-required marker
        sleep: used by the reboot wait loop
    """

    def __init__(self, smi: NvidiaSmi, marker: RebootMarker, sleep: Callable[[float], None] = time.sleep):
        self.smi = smi
        self.marker = marker
        self.sleep = sleep

    # ============================================================
    # apply-mig
    # ============================================================

    def handle_mig_manager(self, mig_settings: NvidiaMigConfig, gpu_info: List[MigGpu]) -> ReconcileResult:
        if mig_settings.is_mig():
            return self.enable_mig(mig_settings, gpu_info)
        return self.disable_mig(gpu_info)

    def enable_mig(self, mig_settings: NvidiaMigConfig, gpu_info: List[MigGpu]) -> ReconcileResult:
        result = ReconcileResult()

        # Raises before any command is issued
        instance_gpu = get_instance_gpu(gpu_info)

        if any(gpu.is_disabled() for gpu in gpu_info):
            self.smi.set_mig_mode(True)
            result.mig_mode = True

            # A100 stays in transition until the GPU is reset; profile goes on after reboot
            if any(requires_full_reset(gpu.model) for gpu in gpu_info):
                logger.info("Rebooting to apply MIG Settings...")
                self.marker.write("Enabling MIG")
                result.reboot_required = True
                return result

        if instance_gpu is GpuFamily.OTHER:
            result.profile = self._apply_unknown_gpu_profile(mig_settings)
            return result

        mig_profile = mig_settings.profile.get(GPU_SPECS[instance_gpu].key, DEFAULT_PROFILE)
        logger.info(f"MIG Profile or the number of GPU slices: {mig_profile!r}")
        profile_string = resolve(instance_gpu, mig_profile)
        self.smi.set_mig_profile(profile_string)
        result.profile = profile_string
        return result

    def _apply_unknown_gpu_profile(self, mig_settings: NvidiaMigConfig) -> Optional[str]:
        """
        The GPU isn't one we know. Try the profiles of GPUs we don't know either,
        in key order, and apply the first one that parses.

        Returns:
            The applied layout, or None if no profile was usable
        """
        known_gpus = known_gpu_keys()
        entries = sorted(
            (gpu, mig_profile)
            for gpu, mig_profile in mig_settings.profile.items()
            if gpu not in known_gpus
        )

        for gpu, mig_profile in entries:
            try:
                profile_string = resolve(GpuFamily.OTHER, mig_profile, gpu=gpu)
            except InvalidProfile as e:
                logger.warning(f"The Profile {mig_profile} is not a valid MIG Profile for the given GPU. ({e})")
                continue

            self.smi.set_mig_profile(profile_string)
            logger.info(f"Successfully applied MIG Profile: {mig_profile}")
            return profile_string

        logger.info("No MIG Profile applicable to this GPU found in the settings.")
        return None

    def disable_mig(self, gpu_info: List[MigGpu]) -> ReconcileResult:
        result = ReconcileResult()

        if any(gpu.is_enabled() for gpu in gpu_info):
            self.smi.set_mig_mode(False)
            result.mig_mode = False

            if any(requires_full_reset(gpu.model) for gpu in gpu_info):
                logger.info("Rebooting to apply MIG Settings...")
                self.marker.write("Disabling MIG")
                result.reboot_required = True

        return result

    # ============================================================
    # reboot-if-required
    # ============================================================

    def reboot_if_required(self, poll_interval: float = REBOOT_POLL_INTERVAL) -> None:
        """
        Reboot the host if a MIG mode change left the marker behind.

        Does not return once the reboot is requested: `systemctl reboot` only
        queues the reboot job, so we keep spinning until the shutdown sends us
        SIGTERM. Boot must not go past a required reboot.
        """
        if not self.marker.exists():
            logger.info("GPU reset not required.")
            return

        logger.info("GPU reset is required to apply MIG Settings. Initiating reboot...")
        self.smi.reboot()

        while True:
            self.sleep(poll_interval)
            logger.info("Still waiting for the host to be rebooted...")
