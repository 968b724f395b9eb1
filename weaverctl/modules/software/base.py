"""Generic installer for a single catalog artifact.

The lifecycle of a software is::

    download -> extract -> install -> configure
    remove_configuration -> uninstall -> cleanup

Each step checks what is already on disk (files plus their checksums, or
the state markers) so re-running a step after a partial failure is safe.
Binaries are installed into the sandbox and exposed on the host through
symlinks in the system bin directory.
"""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Optional

from .catalog import ArtifactCollection, ArtifactMetadata
from .checksum import verify_checksum
from .downloader import Downloader
from .errors import (
    ArtifactFileNotFoundError,
    ChecksumError,
    CleanupError,
    ConfigurationError,
    ExtractionError,
    FileSystemError,
    InstallationError,
    SoftwareError,
    UninstallationError,
    UnsupportedAlgorithmError,
)
from .fsx import FileManager
from .models import BinaryDetail, Checksum, ConfigDetail, StateType
from .paths import DEFAULT_DIR_OR_EXEC_PERM, DEFAULT_FILE_PERM, DEFAULT_UNPACK_FOLDER_NAME, WeaverPaths
from .state import StateManager

logger = logging.getLogger("weaver.software.base")


class Software(ABC):
    """Lifecycle operations every installer provides."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def version(self) -> str:
        ...

    @abstractmethod
    def download(self) -> None:
        ...

    @abstractmethod
    def extract(self) -> None:
        ...

    @abstractmethod
    def verify(self) -> None:
        ...

    @abstractmethod
    def install(self) -> None:
        ...

    @abstractmethod
    def uninstall(self) -> None:
        ...

    @abstractmethod
    def configure(self) -> None:
        ...

    @abstractmethod
    def remove_configuration(self) -> None:
        ...

    @abstractmethod
    def is_installed(self) -> bool:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    def cleanup(self) -> None:
        ...


class BaseInstaller(Software):
    """Installs the binaries and configs of one artifact version.

    Args:
        software: Catalog entry of the software
        version: Version to install, the latest catalog version if omitted
        downloader: Downloader writing below ``paths.temp_dir``
        file_manager: File operations helper
        state_manager: Store for the installed/configured markers
        paths: Directory layout

    Raises:
        VersionNotFoundError: If the version is unknown or no valid latest
            version can be determined
    """

    def __init__(
        self,
        software: ArtifactMetadata,
        version: Optional[str] = None,
        downloader: Optional[Downloader] = None,
        file_manager: Optional[FileManager] = None,
        state_manager: Optional[StateManager] = None,
        paths: Optional[WeaverPaths] = None,
    ):
        self.software = software
        self.paths = paths or WeaverPaths()
        self.downloader = downloader or Downloader(self.paths.temp_dir)
        self.file_manager = file_manager or FileManager()
        self.state_manager = state_manager or StateManager(self.paths.state_dir)

        self._version = version or software.get_latest_version()
        # fail early on unknown versions
        software.get_version_details(self._version)

    @classmethod
    def create(cls, name: str, version: Optional[str] = None, config=None,
               catalog: Optional[ArtifactCollection] = None) -> 'BaseInstaller':
        """Build an installer for ``name`` from the application configuration.

        Raises:
            ConfigLoadError: If the catalog cannot be loaded
            SoftwareNotFoundError: If ``name`` is not in the catalog
            VersionNotFoundError: If the version cannot be resolved
        """
        from ...config import get_config

        config = config or get_config()
        catalog = catalog or ArtifactCollection.load(config.catalog_path)
        paths = config.paths.to_weaver_paths()
        downloader = Downloader(
            paths.temp_dir,
            allowed_domains=config.download.allowed_domains,
            timeout=config.download.timeout_seconds,
        )
        return cls(
            catalog.get_artifact_by_name(name),
            version=version,
            downloader=downloader,
            paths=paths,
        )

    @property
    def name(self) -> str:
        return self.software.name

    @property
    def version(self) -> str:
        return self._version

    def download_folder(self) -> str:
        return os.path.join(self.paths.temp_dir, self.name)

    def extract_folder(self) -> str:
        return os.path.join(self.download_folder(), DEFAULT_UNPACK_FOLDER_NAME)

    def resolve_template(self, value: str) -> str:
        """Render a catalog template for the version being installed."""
        return self.software.resolve(value, self._version)

    def _checksum(self, detail) -> Checksum:
        return self.software.checksum_for(detail, self._version)

    def binary_source_path(self, binary: BinaryDetail) -> str:
        if binary.archive:
            return os.path.join(self.extract_folder(), binary.name)
        return os.path.join(self.download_folder(), os.path.basename(binary.name))

    def config_source_path(self, config: ConfigDetail) -> str:
        if config.archive:
            return os.path.join(self.extract_folder(), config.name)
        return os.path.join(self.download_folder(), os.path.basename(config.name))

    def _is_valid(self, path: str, checksum: Checksum) -> bool:
        try:
            verify_checksum(path, checksum.value, checksum.algorithm)
        except UnsupportedAlgorithmError:
            raise
        except (ChecksumError, ArtifactFileNotFoundError) as e:
            logger.warning(f"⚠️  {path} failed verification: {e}")
            return False
        return True

    def _fetch(self, url: str, destination: str, checksum: Checksum) -> None:
        if self.file_manager.path_exists(destination):
            if self._is_valid(destination, checksum):
                logger.info(f"✅ {os.path.basename(destination)} already downloaded, skipping")
                return
            self.file_manager.remove_all(destination)

        logger.info(f"⬇️  Downloading {url}")
        self.downloader.download(url, destination)
        verify_checksum(destination, checksum.value, checksum.algorithm)

    def download(self) -> None:
        """Download every archive, URL binary and URL config of the version.

        Files already present with a valid checksum are not fetched again;
        invalid ones are deleted and fetched again.

        Raises:
            DownloadError, ChecksumError, PlatformNotFoundError, InvalidURLError
        """
        with self._error_context():
            folder = self.download_folder()
            self.file_manager.create_directory(folder)

            for archive in self.software.resolve_archives(self._version):
                self._fetch(archive.url, os.path.join(folder, os.path.basename(archive.name)), self._checksum(archive))

            for binary in self.software.resolve_binaries(self._version):
                if binary.url and not binary.archive:
                    self._fetch(binary.url, self.binary_source_path(binary), self._checksum(binary))

            for config in self.software.resolve_configs(self._version):
                if config.url and not config.archive:
                    self._fetch(config.url, self.config_source_path(config), self._checksum(config))

    def _archive_paths(self):
        return [
            os.path.join(self.download_folder(), os.path.basename(a.name))
            for a in self.software.resolve_archives(self._version)
        ]

    def _extracted_files_valid(self) -> bool:
        os_name, arch = self.software.platform
        entries = [
            (self.binary_source_path(b), b.checksum_for(os_name, arch))
            for b in self.software.resolve_binaries(self._version) if b.archive
        ] + [
            (self.config_source_path(c), c.checksum_for(os_name, arch))
            for c in self.software.resolve_configs(self._version) if c.archive
        ]
        for path, checksum in entries:
            if not self.file_manager.path_exists(path):
                return False
            if checksum is not None and not self._is_valid(path, checksum):
                return False
        return True

    def extract(self) -> None:
        """Unpack every downloaded archive into the unpack folder.

        A non-empty unpack folder whose archive-sourced files verify is left
        alone; otherwise it is wiped and extracted again.

        Raises:
            ArtifactFileNotFoundError: If an archive has not been downloaded
            ExtractionError: If extraction fails or produces nothing
        """
        with self._error_context():
            archives = self._archive_paths()
            if not archives:
                return

            for archive in archives:
                if not self.file_manager.path_exists(archive):
                    raise ArtifactFileNotFoundError(archive)

            unpack = self.extract_folder()
            if self.file_manager.list_dir(unpack):
                if self._extracted_files_valid():
                    logger.info(f"✅ {self.name} already extracted, skipping")
                    return
                logger.warning(f"⚠️  Extracted files of {self.name} are incomplete, extracting again")
                self.file_manager.remove_all(unpack)

            self.file_manager.create_directory(unpack)
            for archive in archives:
                logger.info(f"📦 Extracting {os.path.basename(archive)}")
                self.downloader.extract(archive, unpack)

            if not self.file_manager.list_dir(unpack):
                raise ExtractionError(archives[0], unpack, reason="archive produced no entries")

    def verify(self) -> None:
        """Re-verify the checksums of every downloaded file.

        Raises:
            ArtifactFileNotFoundError: If a file is missing
            ChecksumError: If a file does not match
        """
        with self._error_context():
            folder = self.download_folder()
            for archive in self.software.resolve_archives(self._version):
                path = os.path.join(folder, os.path.basename(archive.name))
                checksum = self._checksum(archive)
                verify_checksum(path, checksum.value, checksum.algorithm)
            for binary in self.software.resolve_binaries(self._version):
                if binary.url and not binary.archive:
                    checksum = self._checksum(binary)
                    verify_checksum(self.binary_source_path(binary), checksum.value, checksum.algorithm)
            for config in self.software.resolve_configs(self._version):
                if config.url and not config.archive:
                    checksum = self._checksum(config)
                    verify_checksum(self.config_source_path(config), checksum.value, checksum.algorithm)

    def sandbox_binary_path(self, binary: BinaryDetail) -> str:
        return os.path.join(self.paths.sandbox_bin_dir, os.path.basename(binary.name))

    def system_binary_path(self, binary: BinaryDetail) -> str:
        return os.path.join(self.paths.system_bin_dir, os.path.basename(binary.name))

    def perform_install(self) -> None:
        """Copy every binary into the sandbox bin directory."""
        self.file_manager.create_directory(self.paths.sandbox_bin_dir)
        for binary in self.software.resolve_binaries(self._version):
            source = self.binary_source_path(binary)
            if not self.file_manager.path_exists(source):
                raise ArtifactFileNotFoundError(source)
            self.file_manager.copy_file(source, self.sandbox_binary_path(binary), DEFAULT_DIR_OR_EXEC_PERM)

    def install(self) -> None:
        try:
            self.perform_install()
        except SoftwareError as e:
            raise self._installation_error(e) from e
        self.state_manager.record_state(self.name, StateType.INSTALLED, self._version)
        logger.info(f"✅ Installed {self.name} {self._version}")

    def install_config(self, destination_dir: str) -> None:
        """Copy every config file of the version into ``destination_dir``."""
        self.file_manager.create_directory(destination_dir)
        for config in self.software.resolve_configs(self._version):
            source = self.config_source_path(config)
            if not self.file_manager.path_exists(source):
                raise ArtifactFileNotFoundError(source)
            self.file_manager.copy_file(
                source, os.path.join(destination_dir, os.path.basename(config.name)), DEFAULT_FILE_PERM)

    def uninstall_config(self, destination_dir: str) -> None:
        for config in self.software.resolve_configs(self._version):
            self.file_manager.remove_all(os.path.join(destination_dir, os.path.basename(config.name)))

    def is_config_installed(self, destination_dir: str) -> bool:
        return all(
            self.file_manager.path_exists(os.path.join(destination_dir, os.path.basename(c.name)))
            for c in self.software.resolve_configs(self._version)
        )

    def perform_uninstall(self) -> None:
        for binary in self.software.resolve_binaries(self._version):
            self.file_manager.remove_all(self.sandbox_binary_path(binary))

    def uninstall(self) -> None:
        try:
            self.perform_uninstall()
        except SoftwareError as e:
            raise self._uninstallation_error(e) from e
        self.state_manager.remove_state(self.name, StateType.INSTALLED)
        logger.info(f"🗑️  Uninstalled {self.name}")

    def perform_configure(self) -> None:
        """Link every sandbox binary into the system bin directory."""
        self.file_manager.create_directory(self.paths.system_bin_dir)
        for binary in self.software.resolve_binaries(self._version):
            self.file_manager.create_symbolic_link(self.sandbox_binary_path(binary), self.system_binary_path(binary))

    def configure(self) -> None:
        try:
            self.perform_configure()
        except SoftwareError as e:
            raise self._configuration_error(e) from e
        self.state_manager.record_state(self.name, StateType.CONFIGURED, self._version)
        logger.info(f"✅ Configured {self.name} {self._version}")

    def perform_configuration_removal(self) -> None:
        """Remove system symlinks that still point at our sandbox binaries."""
        for binary in self.software.resolve_binaries(self._version):
            link = self.system_binary_path(binary)
            if self.file_manager.is_symlink_to(link, self.sandbox_binary_path(binary)):
                self.file_manager.remove_all(link)
            elif self.file_manager.path_exists(link):
                logger.warning(f"⚠️  {link} is not managed by weaver, leaving it in place")

    def remove_configuration(self) -> None:
        try:
            self.perform_configuration_removal()
        except SoftwareError as e:
            raise self._configuration_error(e) from e
        self.state_manager.remove_state(self.name, StateType.CONFIGURED)
        logger.info(f"🗑️  Removed configuration of {self.name}")

    def _has_state(self, state_type: StateType) -> bool:
        return self.state_manager.get_version(self.name, state_type) == self._version

    def is_installed(self) -> bool:
        return self._has_state(StateType.INSTALLED)

    def is_configured(self) -> bool:
        return self._has_state(StateType.CONFIGURED)

    def cleanup(self) -> None:
        folder = self.download_folder()
        try:
            self.file_manager.remove_all(folder)
        except FileSystemError as e:
            raise CleanupError(folder, e) from e

    def replace_all_in_file(self, path: str, old: str, new: str) -> None:
        """Replace every occurrence of ``old`` with ``new`` in ``path``.

        Applying the same replacement twice leaves the file unchanged, even
        when ``new`` contains ``old``.
        """
        content = self.file_manager.read_file(path)
        if new and old != new:
            content = content.replace(new, old)
        self.file_manager.write_file(path, content.replace(old, new), DEFAULT_FILE_PERM)

    @contextmanager
    def _error_context(self):
        """Tag errors escaping the block with this software and version."""
        try:
            yield
        except SoftwareError as e:
            raise e.with_context(software_name=self.name, version=self._version)

    def _installation_error(self, err: SoftwareError) -> SoftwareError:
        if isinstance(err, InstallationError):
            return err
        return InstallationError(self.name, self._version, err)

    def _uninstallation_error(self, err: SoftwareError) -> SoftwareError:
        if isinstance(err, UninstallationError):
            return err
        return UninstallationError(self.name, self._version, err)

    def _configuration_error(self, err: SoftwareError, reason: Optional[str] = None) -> SoftwareError:
        if isinstance(err, ConfigurationError):
            return err
        return ConfigurationError(self.name, err, reason)


class SoftwareInstaller(Software):
    """Installer built around a :class:`BaseInstaller`.

    Every operation delegates to ``self.base`` unless a subclass overrides it.
    """

    software_name = ""

    def __init__(self, base: BaseInstaller):
        self.base = base

    @classmethod
    def create(cls, version: Optional[str] = None, config=None,
               catalog: Optional[ArtifactCollection] = None, **kwargs) -> 'SoftwareInstaller':
        return cls(BaseInstaller.create(cls.software_name, version, config, catalog), **kwargs)

    @property
    def name(self) -> str:
        return self.base.name

    @property
    def version(self) -> str:
        return self.base.version

    @property
    def paths(self) -> WeaverPaths:
        return self.base.paths

    @property
    def file_manager(self) -> FileManager:
        return self.base.file_manager

    @property
    def state_manager(self) -> StateManager:
        return self.base.state_manager

    def download(self) -> None:
        self.base.download()

    def extract(self) -> None:
        self.base.extract()

    def verify(self) -> None:
        self.base.verify()

    def install(self) -> None:
        self.base.install()

    def uninstall(self) -> None:
        self.base.uninstall()

    def configure(self) -> None:
        self.base.configure()

    def remove_configuration(self) -> None:
        self.base.remove_configuration()

    def is_installed(self) -> bool:
        return self.base.is_installed()

    def is_configured(self) -> bool:
        return self.base.is_configured()

    def cleanup(self) -> None:
        self.base.cleanup()

    def record_state(self, state_type: StateType) -> None:
        self.state_manager.record_state(self.name, state_type, self.version)

    def remove_state(self, state_type: StateType) -> None:
        self.state_manager.remove_state(self.name, state_type)
