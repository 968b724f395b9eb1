"""Teleport node agent installer."""

import logging
import os
import subprocess
from typing import Callable, List, Optional

from .base import BaseInstaller, SoftwareInstaller
from .errors import ArtifactFileNotFoundError, ConfigurationError, SoftwareError
from .models import StateType
from .paths import DEFAULT_DIR_OR_EXEC_PERM, DEFAULT_FILE_PERM, SYSTEMD_UNIT_FILES_DIR

logger = logging.getLogger("weaver.software.teleport")

TELEPORT_SERVICE_FILE = "teleport.service"
TELEPORT_CONFIG_DIR = "/etc/teleport"
TELEPORT_CONFIG_FILE = "/etc/teleport/teleport.yaml"
TELEPORT_SERVICE_ARCHIVE_PATH = "teleport-ent/examples/systemd/production/node/teleport.service"


def run_command(cmd: List[str]) -> subprocess.CompletedProcess:
    """Run a command, raising CalledProcessError on a non-zero exit."""
    cmd_str = ' '.join(cmd)
    logger.debug(f"💻 Running: {cmd_str}")
    try:
        return subprocess.run(cmd, check=True, text=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ Command failed: {cmd_str} (exit code: {e.returncode})\nStderr:\n{e.stderr}")
        raise


class TeleportNodeAgentInstaller(SoftwareInstaller):
    """Installs the Teleport node agent and joins it to a proxy."""

    software_name = "teleport"

    def __init__(self, base: BaseInstaller, proxy_addr: Optional[str] = None,
                 join_token: Optional[str] = None,
                 runner: Callable[[List[str]], object] = run_command):
        super().__init__(base)
        self.proxy_addr = proxy_addr
        self.join_token = join_token
        self.runner = runner

    def service_path(self) -> str:
        return os.path.join(self.paths.sandbox_path(SYSTEMD_UNIT_FILES_DIR), TELEPORT_SERVICE_FILE)

    def systemd_unit_path(self) -> str:
        return os.path.join(self.paths.systemd_unit_dir, TELEPORT_SERVICE_FILE)

    def sandbox_teleport_path(self) -> str:
        return os.path.join(self.paths.sandbox_bin_dir, "teleport")

    def config_file_path(self) -> str:
        return self.paths.host_path(TELEPORT_CONFIG_FILE)

    def install(self) -> None:
        try:
            self.base.perform_install()
            source = os.path.join(self.base.extract_folder(), TELEPORT_SERVICE_ARCHIVE_PATH)
            if not self.file_manager.path_exists(source):
                raise ArtifactFileNotFoundError(source)
            self.file_manager.copy_file(source, self.service_path(), DEFAULT_FILE_PERM)
        except SoftwareError as e:
            raise self.base._installation_error(e) from e
        self.record_state(StateType.INSTALLED)
        logger.info(f"✅ Installed {self.name} {self.version}")

    def uninstall(self) -> None:
        try:
            self.base.perform_uninstall()
            self.file_manager.remove_all(self.service_path())
        except SoftwareError as e:
            raise self.base._uninstallation_error(e) from e
        self.remove_state(StateType.INSTALLED)
        logger.info(f"🗑️  Uninstalled {self.name}")

    def configure_args(self) -> List[str]:
        return [
            self.sandbox_teleport_path(),
            "configure",
            "--roles=node",
            f"--proxy={self.proxy_addr}",
            f"--token={self.join_token}",
            f"--output={self.config_file_path()}",
        ]

    def configure(self) -> None:
        if not self.proxy_addr:
            raise ConfigurationError(self.name, reason="teleport proxy address is required")
        if not self.join_token:
            raise ConfigurationError(self.name, reason="teleport join token is required")

        fm = self.file_manager
        try:
            self.base.perform_configure()
            fm.create_directory(self.paths.host_path(TELEPORT_CONFIG_DIR), DEFAULT_DIR_OR_EXEC_PERM)
            try:
                self.runner(self.configure_args())
            except (OSError, subprocess.CalledProcessError) as e:
                raise ConfigurationError(self.name, e, reason="teleport configure failed") from e

            service = self.service_path()
            self.base.replace_all_in_file(service, "/usr/local/bin/teleport", self.sandbox_teleport_path())
            self.base.replace_all_in_file(service, "/etc/teleport.yaml", self.config_file_path())
            fm.create_symbolic_link(service, self.systemd_unit_path())
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.record_state(StateType.CONFIGURED)
        logger.info(f"✅ Configured {self.name} {self.version}")

    def remove_configuration(self) -> None:
        fm = self.file_manager
        try:
            if fm.is_symlink_to(self.systemd_unit_path(), self.service_path()):
                fm.remove_all(self.systemd_unit_path())
            fm.remove_all(self.config_file_path())
            self.base.perform_configuration_removal()
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.remove_state(StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")
