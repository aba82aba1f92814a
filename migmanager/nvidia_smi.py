"""
nvidia-smi / systemctl command execution.

All hardware interaction goes through run_cmd_local(). A failure (binary
missing, non-zero exit, timeout) is raised as ExternalCommandFailure and ends
the run; there are no retries.
"""
from __future__ import annotations

import logging
import subprocess
from typing import List

from migmanager.errors import ExternalCommandFailure
from migmanager.gpu_info import MigGpu, parse_gpu_info
from migmanager.mig_config import NVIDIA_SMI_PATH, SYSTEMCTL_PATH

logger = logging.getLogger('migmanager')

# Enabling MIG on a multi GPU host can take a while
COMMAND_TIMEOUT = 300

GPU_QUERY_FIELDS = "pci.device_id,mig.mode.current,mig.mode.pending"


def run_cmd_local(cmd: List[str], timeout: int = COMMAND_TIMEOUT) -> str:
    """
    Run a command locally and return its stdout

    Args:
        cmd: command and arguments
        timeout: seconds before the command is killed

    Returns:
        stdout string

    Raises:
        ExternalCommandFailure: could not execute, non-zero exit or timeout
    """
    try:
        p = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ExternalCommandFailure(cmd, reason=f"timed out after {timeout}s") from e
    except OSError as e:
        raise ExternalCommandFailure(cmd, reason=f"failed to execute: {e}") from e

    logger.debug(f"stdout: {p.stdout}")
    logger.debug(f"stderr: {p.stderr}")

    if p.returncode != 0:
        raise ExternalCommandFailure(cmd, returncode=p.returncode, stderr=p.stderr)
    return p.stdout


class NvidiaSmi:
    """The external tools the MIG manager talks to"""

    def __init__(self, nvidia_smi_path: str = NVIDIA_SMI_PATH, systemctl_path: str = SYSTEMCTL_PATH):
        self.nvidia_smi_path = nvidia_smi_path
        self.systemctl_path = systemctl_path

    def query_gpu_info(self) -> List[MigGpu]:
        """Model and MIG state of every GPU in the instance"""
        logger.info("Fetching GPU devices data ...")
        output = run_cmd_local([
            self.nvidia_smi_path,
            f"--query-gpu={GPU_QUERY_FIELDS}",
            "--format=csv,noheader",
        ])
        return parse_gpu_info(output)

    def set_mig_mode(self, mig_enabled: bool) -> None:
        """Enable/disable MIG on all GPUs"""
        logger.info(f"{'Enabling' if mig_enabled else 'Disabling'} MIG.")
        run_cmd_local([self.nvidia_smi_path, "-mig", str(int(mig_enabled))])

    def set_mig_profile(self, profile_string: str) -> None:
        """Create GPU + compute instances for a layout, e.g. "3g.40gb,3g.40gb" """
        logger.info("Activating MIG profile ...")
        run_cmd_local([self.nvidia_smi_path, "mig", "-cgi", profile_string, "-C"])

    def reboot(self) -> None:
        # Returns as soon as systemd has queued the reboot job
        run_cmd_local([self.systemctl_path, "reboot"])
