"""
Shared fixtures: a recording nvidia-smi and a marker under tmp_path.
"""
import logging
from typing import List, Optional, Tuple

import pytest

from migmanager.errors import ExternalCommandFailure
from migmanager.gpu_info import MigGpu
from migmanager.mig_manager import MigManager
from migmanager.nvidia_smi import NvidiaSmi
from migmanager.reboot_marker import RebootMarker


class FakeNvidiaSmi(NvidiaSmi):
    """Records requests instead of running anything"""

    def __init__(self, gpu_info: Optional[List[MigGpu]] = None, fail_on: Optional[str] = None):
        super().__init__("nvidia-smi", "systemctl")
        self.gpu_info = gpu_info or []
        self.fail_on = fail_on
        self.calls: List[Tuple] = []

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise ExternalCommandFailure([name], returncode=1, stderr="boom")

    def query_gpu_info(self) -> List[MigGpu]:
        self.calls.append(("query_gpu_info",))
        self._maybe_fail("query_gpu_info")
        return list(self.gpu_info)

    def set_mig_mode(self, mig_enabled: bool) -> None:
        self.calls.append(("set_mig_mode", mig_enabled))
        self._maybe_fail("set_mig_mode")

    def set_mig_profile(self, profile_string: str) -> None:
        self.calls.append(("set_mig_profile", profile_string))
        self._maybe_fail("set_mig_profile")

    def reboot(self) -> None:
        self.calls.append(("reboot",))
        self._maybe_fail("reboot")


@pytest.fixture(autouse=True)
def reset_logger():
    """setup_logging() detaches the logger from the root; undo it for caplog"""
    yield
    logger = logging.getLogger("migmanager")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def smi():
    return FakeNvidiaSmi()


@pytest.fixture
def marker(tmp_path):
    return RebootMarker(str(tmp_path / "run" / "reboot-required"))


@pytest.fixture
def manager(smi, marker):
    return MigManager(smi, marker)
