"""Cilium CLI installer."""

import logging
import os
from typing import Optional

from .base import BaseInstaller, SoftwareInstaller
from .errors import SoftwareError
from .models import StateType
from .paths import DEFAULT_FILE_PERM
from .render import render_file
from .utils import get_machine_ip

logger = logging.getLogger("weaver.software.cilium")

CILIUM_CONFIG_FILE = "cilium-config.yaml"
ETC_WEAVER_DIR = "/etc/weaver"


class CiliumInstaller(SoftwareInstaller):
    """Installs the cilium CLI and renders the values used to deploy Cilium."""

    software_name = "cilium"

    def __init__(self, base: BaseInstaller, machine_ip: Optional[str] = None):
        super().__init__(base)
        self.machine_ip = machine_ip

    def config_path(self) -> str:
        return os.path.join(self.paths.sandbox_path(ETC_WEAVER_DIR), CILIUM_CONFIG_FILE)

    def render_config(self) -> str:
        return render_file(
            "cilium-config.yaml.j2",
            owner=self.name,
            sandbox_dir=self.paths.sandbox_dir,
            machine_ip=self.machine_ip or get_machine_ip(),
        )

    def configure(self) -> None:
        try:
            self.base.perform_configure()
            self.file_manager.write_file(self.config_path(), self.render_config(), DEFAULT_FILE_PERM)
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.record_state(StateType.CONFIGURED)
        logger.info(f"✅ Configured {self.name} {self.version}")

    def remove_configuration(self) -> None:
        try:
            self.file_manager.remove_all(self.config_path())
            self.base.perform_configuration_removal()
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.remove_state(StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")
