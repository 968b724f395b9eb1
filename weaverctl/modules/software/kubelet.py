"""kubelet installer."""

import logging
import os

from .base import SoftwareInstaller
from .errors import ArtifactFileNotFoundError, ConfigurationError, SoftwareError
from .models import StateType
from .paths import DEFAULT_FILE_PERM, SYSTEMD_UNIT_FILES_DIR

logger = logging.getLogger("weaver.software.kubelet")

KUBELET_SERVICE_FILE = "kubelet.service"


class KubeletInstaller(SoftwareInstaller):
    """Installs kubelet and a sandbox-aware copy of its unit file.

    The shipped ``kubelet.service`` is kept untouched; configure writes a
    patched ``kubelet.service.latest`` next to it and links that one into
    the host systemd directory.
    """

    software_name = "kubelet"

    def config_dir(self) -> str:
        return self.paths.sandbox_path(SYSTEMD_UNIT_FILES_DIR)

    def service_path(self) -> str:
        return os.path.join(self.config_dir(), KUBELET_SERVICE_FILE)

    def latest_service_path(self) -> str:
        return self.service_path() + ".latest"

    def systemd_unit_path(self) -> str:
        return os.path.join(self.paths.systemd_unit_dir, KUBELET_SERVICE_FILE)

    def sandbox_kubelet_path(self) -> str:
        return os.path.join(self.paths.sandbox_bin_dir, "kubelet")

    def install(self) -> None:
        try:
            self.base.perform_install()
            self.base.install_config(self.config_dir())
        except SoftwareError as e:
            raise self.base._installation_error(e) from e
        self.record_state(StateType.INSTALLED)
        logger.info(f"✅ Installed {self.name} {self.version}")

    def uninstall(self) -> None:
        try:
            self.base.perform_uninstall()
            self.base.uninstall_config(self.config_dir())
        except SoftwareError as e:
            raise self.base._uninstallation_error(e) from e
        self.remove_state(StateType.INSTALLED)
        logger.info(f"🗑️  Uninstalled {self.name}")

    def expected_latest_content(self) -> str:
        original = self.file_manager.read_file(self.service_path())
        return original.replace("/usr/bin/kubelet", self.sandbox_kubelet_path())

    def configure(self) -> None:
        fm = self.file_manager
        try:
            self.base.perform_configure()
            if not fm.path_exists(self.service_path()):
                raise ConfigurationError(self.name, ArtifactFileNotFoundError(self.service_path()))
            fm.write_file(self.latest_service_path(), self.expected_latest_content(), DEFAULT_FILE_PERM)
            fm.create_symbolic_link(self.latest_service_path(), self.systemd_unit_path())
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.record_state(StateType.CONFIGURED)
        logger.info(f"✅ Configured {self.name} {self.version}")

    def remove_configuration(self) -> None:
        fm = self.file_manager
        try:
            self.base.perform_configuration_removal()
            if fm.is_symlink_to(self.systemd_unit_path(), self.latest_service_path()):
                fm.remove_all(self.systemd_unit_path())
            fm.remove_all(self.latest_service_path())
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.remove_state(StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")

    def is_installed(self) -> bool:
        return self.base.is_installed() and self.base.is_config_installed(self.config_dir())

    def is_configured(self) -> bool:
        if not self.base.is_configured():
            return False
        fm = self.file_manager
        latest = self.latest_service_path()
        if not fm.is_regular_file(latest) or not fm.path_exists(self.service_path()):
            return False
        if fm.read_file(latest) != self.expected_latest_content():
            return False
        return fm.is_symlink_to(self.systemd_unit_path(), latest)
