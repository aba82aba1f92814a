"""
Reboot-required marker file.

Written when a MIG mode change needs a GPU reset, checked by
`nvidia-migmanager reboot-if-required`. We never delete it: it lives under
/run and goes away with the reboot.
"""
from __future__ import annotations

import logging
import os

from migmanager.errors import MarkerWriteFailure
from migmanager.mig_config import REBOOT_REQUIRED_MARKER_FILE

logger = logging.getLogger('migmanager')


class RebootMarker:
    def __init__(self, path: str = REBOOT_REQUIRED_MARKER_FILE):
        self.path = path

    def write(self, reason: str) -> None:
        """Create the marker. `reason` is for humans only, never read back."""
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(reason)
        except OSError as e:
            raise MarkerWriteFailure(self.path, e) from e
        logger.info(f"Reboot marker written: {self.path} ({reason})")

    def exists(self) -> bool:
        return os.path.exists(self.path)
