"""Directory layout of the weaver home and the host paths it touches."""

import os
from dataclasses import dataclass

DEFAULT_WEAVER_HOME = "/opt/solo/weaver"
DEFAULT_UNPACK_FOLDER_NAME = "unpack"
SYSTEM_BIN_DIR = "/usr/local/bin"
SYSTEMD_UNIT_FILES_DIR = "/usr/lib/systemd/system"

DEFAULT_DIR_OR_EXEC_PERM = 0o755
DEFAULT_FILE_PERM = 0o644


@dataclass
class WeaverPaths:
    """Resolved directories for one weaver home.

    ``root_dir`` prefixes every absolute host path (system bin dir, systemd
    unit dir, ``/etc``), so the whole layout can be relocated under a
    temporary directory.
    """
    home: str = DEFAULT_WEAVER_HOME
    root_dir: str = "/"

    @property
    def bin_dir(self) -> str:
        return os.path.join(self.home, "bin")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.home, "logs")

    @property
    def config_dir(self) -> str:
        return os.path.join(self.home, "config")

    @property
    def temp_dir(self) -> str:
        return os.path.join(self.home, "tmp")

    @property
    def state_dir(self) -> str:
        return os.path.join(self.home, "state")

    @property
    def sandbox_dir(self) -> str:
        return os.path.join(self.home, "sandbox")

    @property
    def sandbox_bin_dir(self) -> str:
        return os.path.join(self.sandbox_dir, "bin")

    @property
    def sandbox_local_bin_dir(self) -> str:
        return os.path.join(self.sandbox_dir, "usr", "local", "bin")

    def host_path(self, absolute_path: str) -> str:
        """Map an absolute host path under ``root_dir``."""
        return os.path.join(self.root_dir, absolute_path.lstrip("/"))

    def sandbox_path(self, absolute_path: str) -> str:
        """Map an absolute path into the sandbox, e.g. ``/etc/crio`` -> ``<sandbox>/etc/crio``."""
        return os.path.join(self.sandbox_dir, absolute_path.lstrip("/"))

    @property
    def system_bin_dir(self) -> str:
        return self.host_path(SYSTEM_BIN_DIR)

    @property
    def systemd_unit_dir(self) -> str:
        return self.host_path(SYSTEMD_UNIT_FILES_DIR)

    def all_dirs(self):
        """Directories created when the weaver home is initialised."""
        return [self.bin_dir, self.logs_dir, self.config_dir, self.temp_dir,
                self.state_dir, self.sandbox_dir, self.sandbox_bin_dir]
