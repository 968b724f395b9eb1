"""State markers recording which software is installed or configured.

Each marker is a small text file ``<state_dir>/<software>.<type>`` holding
``"<type> at version <version>\\n"``.
"""

import logging
import os
import re
from typing import Optional

from .errors import FileSystemError
from .models import StateType

logger = logging.getLogger("weaver.software.state")

_CONTENT_PATTERN = re.compile(r"^(?P<type>\w+) at version (?P<version>\S+)\s*$")


class StateManager:
    """Reads and writes state markers under a single directory."""

    def __init__(self, state_dir: str):
        self.state_dir = state_dir

    def _marker_path(self, software_name: str, state_type: StateType) -> str:
        return os.path.join(self.state_dir, f"{software_name}.{StateType(state_type).value}")

    def record_state(self, software_name: str, state_type: StateType, version: str) -> None:
        """Create or overwrite the marker for ``software_name``.

        Raises:
            FileSystemError: If the marker cannot be written
        """
        path = self._marker_path(software_name, state_type)
        try:
            os.makedirs(self.state_dir, 0o755, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(f"{StateType(state_type).value} at version {version}\n")
            os.chmod(path, 0o644)
        except OSError as e:
            raise FileSystemError("failed to record state", e, path) from e
        logger.debug(f"Recorded {StateType(state_type).value} state for {software_name} {version}")

    def remove_state(self, software_name: str, state_type: StateType) -> None:
        """Delete the marker; a missing marker is not an error."""
        path = self._marker_path(software_name, state_type)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise FileSystemError("failed to remove state", e, path) from e
        logger.debug(f"Removed {StateType(state_type).value} state for {software_name}")

    def exists(self, software_name: str, state_type: StateType) -> bool:
        return os.path.isfile(self._marker_path(software_name, state_type))

    def get_version(self, software_name: str, state_type: StateType) -> Optional[str]:
        """Return the version recorded in the marker, or None if absent or unreadable."""
        path = self._marker_path(software_name, state_type)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read state marker {path}: {e}")
            return None

        match = _CONTENT_PATTERN.match(content.strip())
        if not match:
            logger.warning(f"Malformed state marker {path}")
            return None
        return match.group('version')
