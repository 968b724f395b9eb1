"""CRI-O installer.

Installation reproduces the upstream ``install`` script of the CRI-O release
tarball with ``DESTDIR`` set to the sandbox. Configuration rewrites the
shipped config and unit file to point at the sandbox and links them into
the host.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from .base import BaseInstaller, SoftwareInstaller
from .errors import ArtifactFileNotFoundError, ConfigurationError, InstallationError, SoftwareError
from .models import StateType
from .paths import DEFAULT_DIR_OR_EXEC_PERM, DEFAULT_FILE_PERM, SYSTEMD_UNIT_FILES_DIR
from .tomlx import diff_toml_file, update_toml_file
from .utils import get_sysconfig_dir

logger = logging.getLogger("weaver.software.crio")

CRIO_CONF_FILE = "10-crio.conf"
CRIO_SERVICE_FILE = "crio.service"
CRIO_INSTALL_FILE = ".crio-install"
CRIO_DEFAULT_CONFIG_FILE = "crio"

ETC_CONTAINERS_DIR = "/etc/containers"
USR_BIN_DIR = "/usr/bin"
LIBEXEC_DIR = "/usr/libexec"
LIBEXEC_CRIO_DIR = "/usr/libexec/crio"
BIN_DIR = "/usr/local/bin"
SHARE_DIR = "/usr/local/share"
MAN5_DIR = os.path.join(SHARE_DIR, "man", "man5")
MAN8_DIR = os.path.join(SHARE_DIR, "man", "man8")
OCI_DIR = os.path.join(SHARE_DIR, "oci-umount", "oci-umount.d")
BASH_COMPLETION_DIR = os.path.join(SHARE_DIR, "bash-completion", "completions")
FISH_COMPLETION_DIR = os.path.join(SHARE_DIR, "fish", "completions")
ZSH_COMPLETION_DIR = os.path.join(SHARE_DIR, "zsh", "site-functions")
CNI_DIR = "/etc/cni/net.d"
OPT_CNI_BIN_DIR = "/opt/cni/bin"
ETC_CRIO_DIR = "/etc/crio"
CRIO_CONFD_DIR = os.path.join(ETC_CRIO_DIR, "crio.conf.d")
CONTAINERS_REGISTRIES_CONFD_DIR = os.path.join(ETC_CONTAINERS_DIR, "registries.conf.d")

# binary in the tarball's bin/ -> directory in the sandbox
BINARIES = {
    "conmon": LIBEXEC_CRIO_DIR,
    "conmonrs": LIBEXEC_CRIO_DIR,
    "crun": LIBEXEC_CRIO_DIR,
    "runc": LIBEXEC_CRIO_DIR,
    "crio": BIN_DIR,
    "pinns": BIN_DIR,
    "crictl": BIN_DIR,
}

ETC_DEFAULT_CRIO_TEMPLATE = """# /etc/default/crio

# use "--enable-metrics" and "--metrics-port value"
#CRIO_METRICS_OPTIONS="--enable-metrics"

#CRIO_NETWORK_OPTIONS=
#CRIO_STORAGE_OPTIONS=

# CRI-O configuration directory
CRIO_CONFIG_OPTIONS="--config-dir={sandbox}/etc/crio/crio.conf.d"
"""


class CrioInstaller(SoftwareInstaller):
    """Installs CRI-O, its OCI runtimes and CNI plugins into the sandbox."""

    software_name = "cri-o"

    def __init__(self, base: BaseInstaller, sysconfig_dir: Optional[str] = None,
                 home_dir: Optional[str] = None):
        super().__init__(base)
        self.sysconfig_dir = sysconfig_dir or get_sysconfig_dir()
        self.home_dir = home_dir or os.path.expanduser("~")

    def _sandbox(self, path: str) -> str:
        return self.paths.sandbox_path(path)

    def source_dir(self) -> str:
        return os.path.join(self.base.extract_folder(), "cri-o")

    def config_files(self) -> Dict[str, str]:
        """Tarball relative config path -> absolute sandbox destination."""
        return {
            "contrib/10-crio-bridge.conflist.disabled":
                os.path.join(self._sandbox(CNI_DIR), "10-crio-bridge.conflist.disabled"),
            "etc/crictl.yaml": os.path.join(self._sandbox("/etc"), "crictl.yaml"),
            "etc/crio-umount.conf": os.path.join(self._sandbox(OCI_DIR), "crio-umount.conf"),
            "etc/crio": os.path.join(self._sandbox(self.sysconfig_dir), CRIO_DEFAULT_CONFIG_FILE),
            "contrib/policy.json": os.path.join(self._sandbox(ETC_CRIO_DIR), "policy.json"),
            "etc/10-crio.conf": self.crio_conf_path(),
            "man/crio.conf.5": os.path.join(self._sandbox(MAN5_DIR), "crio.conf.5"),
            "man/crio.conf.d.5": os.path.join(self._sandbox(MAN5_DIR), "crio.conf.d.5"),
            "man/crio.8": os.path.join(self._sandbox(MAN8_DIR), "crio.8"),
            "completions/bash/crio": os.path.join(self._sandbox(BASH_COMPLETION_DIR), "crio"),
            "completions/fish/crio.fish": os.path.join(self._sandbox(FISH_COMPLETION_DIR), "crio.fish"),
            "completions/zsh/_crio": os.path.join(self._sandbox(ZSH_COMPLETION_DIR), "_crio"),
            "contrib/crio.service": self.service_path(),
            "contrib/registries.conf":
                os.path.join(self._sandbox(CONTAINERS_REGISTRIES_CONFD_DIR), "registries.conf"),
        }

    def install_dirs(self) -> List[str]:
        return [self._sandbox(d) for d in (
            CNI_DIR, OPT_CNI_BIN_DIR, LIBEXEC_CRIO_DIR, BASH_COMPLETION_DIR, FISH_COMPLETION_DIR,
            ZSH_COMPLETION_DIR, CONTAINERS_REGISTRIES_CONFD_DIR, BIN_DIR, OCI_DIR, self.sysconfig_dir,
            CRIO_CONFD_DIR, MAN5_DIR, MAN8_DIR, SYSTEMD_UNIT_FILES_DIR,
        )]

    def crio_conf_path(self) -> str:
        return os.path.join(self._sandbox(CRIO_CONFD_DIR), CRIO_CONF_FILE)

    def service_path(self) -> str:
        return os.path.join(self._sandbox(SYSTEMD_UNIT_FILES_DIR), CRIO_SERVICE_FILE)

    def systemd_service_link(self) -> str:
        return os.path.join(self.paths.systemd_unit_dir, CRIO_SERVICE_FILE)

    def etc_default_crio_path(self) -> str:
        return os.path.join(self._sandbox("/etc/default"), CRIO_DEFAULT_CONFIG_FILE)

    def install_list_path(self) -> str:
        return os.path.join(self.home_dir, CRIO_INSTALL_FILE)

    def install(self) -> None:
        try:
            self._install_files()
        except SoftwareError as e:
            raise self.base._installation_error(e) from e
        self.record_state(StateType.INSTALLED)
        logger.info(f"✅ Installed {self.name} {self.version}")

    def _install_files(self) -> None:
        src = self.source_dir()
        fm = self.file_manager

        for directory in self.install_dirs():
            fm.create_directory(directory)

        cni_plugins = os.path.join(src, "cni-plugins")
        if not os.path.isdir(cni_plugins):
            raise InstallationError(self.name, self.version,
                                    ArtifactFileNotFoundError(cni_plugins))
        for entry in fm.list_dir(cni_plugins):
            plugin = os.path.join(cni_plugins, entry)
            if os.path.isfile(plugin):
                fm.copy_file(plugin, os.path.join(self._sandbox(OPT_CNI_BIN_DIR), entry), DEFAULT_DIR_OR_EXEC_PERM)

        for binary, dest_dir in BINARIES.items():
            source = os.path.join(src, "bin", binary)
            if not fm.path_exists(source):
                raise ArtifactFileNotFoundError(source)
            fm.copy_file(source, os.path.join(self._sandbox(dest_dir), binary), DEFAULT_DIR_OR_EXEC_PERM)

        for relative, destination in self.config_files().items():
            source = os.path.join(src, relative)
            if not fm.path_exists(source):
                raise ArtifactFileNotFoundError(source)
            fm.copy_file(source, destination, DEFAULT_FILE_PERM)

    def uninstall(self) -> None:
        fm = self.file_manager
        try:
            for binary, dest_dir in BINARIES.items():
                fm.remove_all(os.path.join(self._sandbox(dest_dir), binary))
            fm.remove_all(self._sandbox(OPT_CNI_BIN_DIR))
            for destination in self.config_files().values():
                fm.remove_all(destination)
            for directory in (LIBEXEC_CRIO_DIR, BASH_COMPLETION_DIR, FISH_COMPLETION_DIR, ZSH_COMPLETION_DIR,
                              CONTAINERS_REGISTRIES_CONFD_DIR, OCI_DIR, CRIO_CONFD_DIR, MAN5_DIR, MAN8_DIR,
                              CNI_DIR):
                fm.remove_all(self._sandbox(directory))
            fm.remove_all(self.install_list_path())
        except SoftwareError as e:
            raise self.base._uninstallation_error(e) from e
        self.remove_state(StateType.INSTALLED)
        logger.info(f"🗑️  Uninstalled {self.name}")

    def expected_toml_config(self) -> Dict[str, Any]:
        """Sandbox paths written into ``10-crio.conf`` by configure."""
        sandbox = self.paths.sandbox_dir
        local_bin = self.paths.sandbox_local_bin_dir
        return {
            "crio.runtime.default_runtime": "runc",
            "crio.runtime.decryption_keys_path": os.path.join(sandbox, "etc/crio/keys"),
            "crio.runtime.container_exits_dir": os.path.join(sandbox, "var/run/crio/exits"),
            "crio.runtime.container_attach_socket_dir": os.path.join(sandbox, "var/run/crio"),
            "crio.runtime.namespaces_dir": os.path.join(sandbox, "var/run"),
            "crio.runtime.pinns_path": os.path.join(local_bin, "pinns"),
            "crio.runtime.runtimes.runc.runtime_root": os.path.join(sandbox, "run/runc"),
            "crio.api.listen": os.path.join(sandbox, "var/run/crio/crio.sock"),
            "crio.root": os.path.join(sandbox, "var/lib/containers/storage"),
            "crio.runroot": os.path.join(sandbox, "var/run/containers/storage"),
            "crio.version_file": os.path.join(sandbox, "var/run/crio/version"),
            "crio.log_dir": os.path.join(sandbox, "var/logs/crio/pods"),
            "crio.clean_shutdown_file": os.path.join(sandbox, "var/lib/crio/clean.shutdown"),
            "crio.network.network_dir": os.path.join(sandbox, "etc/cni/net.d"),
            "crio.network.plugin_dirs": [os.path.join(sandbox, "opt/cni/bin")],
            "crio.nri.nri_plugin_dir": os.path.join(sandbox, "opt/nri/plugins"),
            "crio.nri.nri_plugin_config_dir": os.path.join(sandbox, "etc/nri/conf.d"),
            "crio.nri.nri_listen": os.path.join(sandbox, "var/run/nri/nri.sock"),
        }

    def expected_install_list(self) -> str:
        """Content of the ``~/.crio-install`` manifest."""
        entries = [os.path.join(self._sandbox(OPT_CNI_BIN_DIR), "*")]
        entries += [os.path.join(self._sandbox(d), b) for b, d in BINARIES.items()]
        entries += list(self.config_files().values())
        return "\n".join(entries) + "\n"

    def configure(self) -> None:
        try:
            self._configure()
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.record_state(StateType.CONFIGURED)
        logger.info(f"✅ Configured {self.name} {self.version}")

    def _configure(self) -> None:
        sandbox = self.paths.sandbox_dir
        fm = self.file_manager
        conf = self.crio_conf_path()
        if not fm.path_exists(conf):
            raise ConfigurationError(self.name, ArtifactFileNotFoundError(conf))

        self.base.replace_all_in_file(conf, USR_BIN_DIR, self._sandbox(BIN_DIR))
        self.base.replace_all_in_file(conf, LIBEXEC_DIR, self._sandbox(LIBEXEC_DIR))
        self.base.replace_all_in_file(conf, ETC_CRIO_DIR, self._sandbox(ETC_CRIO_DIR))

        fm.write_file(self.install_list_path(), self.expected_install_list(), DEFAULT_FILE_PERM)

        service = self.service_path()
        self.base.replace_all_in_file(service, "/usr/local/bin/crio",
                                      os.path.join(self.paths.sandbox_local_bin_dir, "crio"))
        self.base.replace_all_in_file(service, "/etc/sysconfig/crio", self.etc_default_crio_path())

        fm.create_symbolic_link(self._sandbox(ETC_CONTAINERS_DIR), self.paths.host_path(ETC_CONTAINERS_DIR))

        fm.write_file(self.etc_default_crio_path(), ETC_DEFAULT_CRIO_TEMPLATE.format(sandbox=sandbox),
                      DEFAULT_FILE_PERM)

        update_toml_file(conf, self.expected_toml_config())

        fm.create_directory(self.paths.systemd_unit_dir)
        fm.create_symbolic_link(service, self.systemd_service_link())

    def remove_configuration(self) -> None:
        fm = self.file_manager
        try:
            for link, target in ((self.systemd_service_link(), self.service_path()),
                                 (self.paths.host_path(ETC_CONTAINERS_DIR), self._sandbox(ETC_CONTAINERS_DIR))):
                if fm.is_symlink_to(link, target):
                    fm.remove_all(link)
                elif fm.path_exists(link):
                    logger.warning(f"⚠️  {link} is not managed by weaver, leaving it in place")
            fm.remove_all(self.etc_default_crio_path())
        except SoftwareError as e:
            raise self.base._configuration_error(e) from e
        self.remove_state(StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")

    def is_configured(self) -> bool:
        if not self.base.is_configured():
            return False
        mismatched = diff_toml_file(self.crio_conf_path(), self.expected_toml_config())
        if mismatched:
            logger.debug(f"CRI-O config differs from expected values: {sorted(mismatched)}")
            return False
        fm = self.file_manager
        return (fm.is_symlink_to(self.systemd_service_link(), self.service_path())
                and fm.is_symlink_to(self.paths.host_path(ETC_CONTAINERS_DIR), self._sandbox(ETC_CONTAINERS_DIR)))
