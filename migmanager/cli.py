#!/usr/bin/env python3
"""
nvidia-migmanager

Ensures that MIG settings are applied to an instance that supports it. Run by
nvidia-migmanager.service.

## Usage
    # enable/disable MIG and apply the profile for the GPUs of the instance
    nvidia-migmanager apply-mig

    # exit code 3 when MIG is active and Fabric Manager must not start
    nvidia-migmanager is-fabric-manager-compatible

    # reboot (and wait for it) if a MIG mode change needs a GPU reset
    nvidia-migmanager reboot-if-required

    # other config / log level
    nvidia-migmanager --log-level debug -d ./nvidia-migmanager.yaml apply-mig
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from migmanager.errors import MigManagerError
from migmanager.mig_config import (
    DEFAULT_CONFIG_PATH,
    NVIDIA_SMI_PATH,
    REBOOT_REQUIRED_MARKER_FILE,
    SYSTEMCTL_PATH,
    load_mig_settings,
)
from migmanager.mig_manager import MigManager, is_fabric_manager_compatible
from migmanager.nvidia_smi import NvidiaSmi
from migmanager.reboot_marker import RebootMarker

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FABRIC_MANAGER_INCOMPATIBLE = 3

LOG_LEVELS = ["trace", "debug", "info", "warn", "warning", "error"]

logger = logging.getLogger('migmanager')


# ==================== Logging ====================

class _BelowErrorFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def _to_level(name: str) -> int:
    name = name.lower()
    if name == "trace":
        return logging.DEBUG
    if name == "warn":
        return logging.WARNING
    return getattr(logging, name.upper())


def setup_logging(log_level: str = "info") -> logging.Logger:
    """Console logging: errors to stderr, everything else to stdout"""
    level = _to_level(log_level)

    logger = logging.getLogger('migmanager')
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(message)s', datefmt='%H:%M:%S')

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.addFilter(_BelowErrorFilter())
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)

    logger.propagate = False

    return logger


# ==================== CLI ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nvidia-migmanager",
        description="Apply the MIG settings to the GPUs of this instance",
    )
    parser.add_argument("--log-level", default="info", type=str.lower, choices=LOG_LEVELS,
                        help="log level (default: info)")
    parser.add_argument("-d", "--config-path", default=DEFAULT_CONFIG_PATH,
                        help=f"configuration file with the desired MIG settings (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--nvidia-smi-path", default=NVIDIA_SMI_PATH, help="nvidia-smi binary")
    parser.add_argument("--systemctl-path", default=SYSTEMCTL_PATH, help="systemctl binary")
    parser.add_argument("--marker-path", default=REBOOT_REQUIRED_MARKER_FILE,
                        help="reboot-required marker file")

    subparsers = parser.add_subparsers(dest="subcommand", required=True)
    subparsers.add_parser("apply-mig", help="enable/disable MIG and apply the MIG profile")
    subparsers.add_parser("is-fabric-manager-compatible",
                          help="fail if MIG is active, since Fabric Manager can't run with it")
    subparsers.add_parser("reboot-if-required",
                          help="reboot the host if a MIG mode change needs a GPU reset")
    return parser


def run(args: argparse.Namespace) -> int:
    manager = MigManager(
        NvidiaSmi(args.nvidia_smi_path, args.systemctl_path),
        RebootMarker(args.marker_path),
    )

    if args.subcommand == "reboot-if-required":
        manager.reboot_if_required()
        return EXIT_OK

    mig_settings = load_mig_settings(args.config_path)
    gpu_info = manager.smi.query_gpu_info()

    if args.subcommand == "is-fabric-manager-compatible":
        if not is_fabric_manager_compatible(mig_settings, gpu_info):
            return EXIT_FABRIC_MANAGER_INCOMPATIBLE
        return EXIT_OK

    result = manager.handle_mig_manager(mig_settings, gpu_info)
    logger.debug(f"Reconcile result: {result}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    logger.info("nvidia-migmanager started")

    try:
        return run(args)
    except MigManagerError as e:
        print(e, file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
