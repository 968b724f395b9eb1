"""kubeadm installer: binary, kubelet drop-in and the kubeadm init configuration."""

import logging
import os
import socket
from typing import Callable, Optional

from .base import BaseInstaller, SoftwareInstaller
from .errors import ArtifactFileNotFoundError, ConfigurationError, SoftwareError
from .models import StateType
from .paths import DEFAULT_FILE_PERM, SYSTEMD_UNIT_FILES_DIR
from .render import render_file
from .utils import generate_kubeadm_token, get_machine_ip

logger = logging.getLogger("weaver.software.kubeadm")

KUBELET_SERVICE_DIR = os.path.join(SYSTEMD_UNIT_FILES_DIR, "kubelet.service.d")
KUBEADM_CONF_FILE = "10-kubeadm.conf"
KUBEADM_INIT_CONFIG_FILE = "kubeadm-init.yaml"
ETC_WEAVER_DIR = "/etc/weaver"


class KubeadmInstaller(SoftwareInstaller):
    """Installs kubeadm and prepares ``kubeadm init`` for the sandbox."""

    software_name = "kubeadm"

    def __init__(self, base: BaseInstaller, machine_ip: Optional[str] = None,
                 hostname: Optional[str] = None,
                 token_generator: Callable[[], str] = generate_kubeadm_token):
        super().__init__(base)
        self.machine_ip = machine_ip
        self.hostname = hostname
        self.token_generator = token_generator

    def sandbox_service_dir(self) -> str:
        return self.paths.sandbox_path(KUBELET_SERVICE_DIR)

    def kubeadm_conf_path(self) -> str:
        return os.path.join(self.sandbox_service_dir(), KUBEADM_CONF_FILE)

    def system_conf_path(self) -> str:
        return os.path.join(self.paths.host_path(KUBELET_SERVICE_DIR), KUBEADM_CONF_FILE)

    def init_config_path(self) -> str:
        return os.path.join(self.paths.sandbox_path(ETC_WEAVER_DIR), KUBEADM_INIT_CONFIG_FILE)

    def install(self) -> None:
        try:
            self.base.perform_install()
            self.base.install_config(self.sandbox_service_dir())
        except SoftwareError as e:
            raise self.base._installation_error(e) from e
        self.record_state(StateType.INSTALLED)
        logger.info(f"✅ Installed {self.name} {self.version}")

    def uninstall(self) -> None:
        try:
            self.base.perform_uninstall()
            self.base.uninstall_config(self.sandbox_service_dir())
        except SoftwareError as e:
            raise self.base._uninstallation_error(e) from e
        self.remove_state(StateType.INSTALLED)
        logger.info(f"🗑️  Uninstalled {self.name}")

    def configure(self) -> None:
        try:
            self.base.perform_configure()
            self._patch_kubeadm_conf()
            self.file_manager.create_symbolic_link(self.kubeadm_conf_path(), self.system_conf_path())
            self._write_init_config()
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.record_state(StateType.CONFIGURED)
        logger.info(f"✅ Configured {self.name} {self.version}")

    def _patch_kubeadm_conf(self) -> None:
        conf = self.kubeadm_conf_path()
        if not self.file_manager.path_exists(conf):
            raise ConfigurationError(self.name, ArtifactFileNotFoundError(conf))
        self.base.replace_all_in_file(conf, "/usr/bin/kubelet",
                                      os.path.join(self.paths.sandbox_bin_dir, "kubelet"))

    def render_init_config(self) -> str:
        return render_file(
            "kubeadm-init.yaml.j2",
            owner=self.name,
            kube_bootstrap_token=self.token_generator(),
            sandbox_dir=self.paths.sandbox_dir,
            machine_ip=self.machine_ip or get_machine_ip(),
            hostname=self.hostname or socket.gethostname(),
            kubernetes_version=self.version,
        )

    def _write_init_config(self) -> None:
        self.file_manager.write_file(self.init_config_path(), self.render_init_config(), DEFAULT_FILE_PERM)

    def remove_configuration(self) -> None:
        fm = self.file_manager
        try:
            if fm.is_symlink_to(self.system_conf_path(), self.kubeadm_conf_path()):
                fm.remove_all(self.system_conf_path())
            elif fm.path_exists(self.system_conf_path()):
                logger.warning(f"⚠️  {self.system_conf_path()} is not managed by weaver, leaving it in place")
            fm.remove_all(self.init_config_path())
            self.base.perform_configuration_removal()
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.remove_state(StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")
