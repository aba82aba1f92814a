"""
MIG Manager settings

Example (/etc/nvidia-migmanager/nvidia-migmanager.yaml):

    device-partitioning-strategy: mig
    profile:
      a100.40gb: "2"
      h100.80gb: "4"
      h200.141gb: "3"

splits an A100 instance in 2, an H100 instance in 4 and an H200 instance in 3.
A GPU without an entry gets the full GPU profile.
"""
from __future__ import annotations

from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from migmanager.errors import ConfigParseFailure, ConfigReadFailure

# ============================================================
# Paths
# ============================================================

DEFAULT_CONFIG_PATH = "/etc/nvidia-migmanager/nvidia-migmanager.yaml"
NVIDIA_SMI_PATH = "/usr/libexec/nvidia/tesla/bin/nvidia-smi"
SYSTEMCTL_PATH = "/usr/bin/systemctl"
REBOOT_REQUIRED_MARKER_FILE = "/run/nvidia-migmanager/reboot-required"

MIG_STRATEGY = "mig"


class NvidiaMigConfig(BaseModel):
    """Desired MIG state. Keys are kebab-case in the document."""
    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
    )

    device_partitioning_strategy: str = ""
    profile: Dict[str, str] = Field(default_factory=dict)

    @field_validator("device_partitioning_strategy", mode="before")
    @classmethod
    def _empty_strategy(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("profile", mode="before")
    @classmethod
    def _stringify_profiles(cls, value: Any) -> Any:
        # `a100.40gb: 2` is read as an int by YAML
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                str(gpu): str(mig_profile) if isinstance(mig_profile, (int, float)) else mig_profile
                for gpu, mig_profile in value.items()
            }
        return value

    def is_mig(self) -> bool:
        return self.device_partitioning_strategy == MIG_STRATEGY


def load_mig_settings(config_path: str) -> NvidiaMigConfig:
    """
    Read the config file to get MIG settings

    Raises:
        ConfigReadFailure: file can't be read
        ConfigParseFailure: not YAML, not a mapping, or wrong value types
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            config_str = f.read()
    except OSError as e:
        raise ConfigReadFailure(config_path, e) from e

    try:
        data = yaml.safe_load(config_str)
    except yaml.YAMLError as e:
        raise ConfigParseFailure(config_path, e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigParseFailure(config_path, f"expected a mapping, got {type(data).__name__}")

    try:
        return NvidiaMigConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigParseFailure(config_path, e) from e
