"""Data models for the software artifact catalog."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ArtifactFileNotFoundError


class StateType(str, Enum):
    """Kinds of state markers recorded for a software."""
    INSTALLED = 'installed'
    CONFIGURED = 'configured'


@dataclass
class Checksum:
    """Expected digest of a file."""
    algorithm: str
    value: str


# Format: {os: {arch: Checksum}}
PlatformChecksums = Dict[str, Dict[str, Checksum]]

# Keys of a detail entry that are not platform names
_RESERVED_KEYS = ('name', 'url', 'archive', 'algorithm', 'checksum')


def parse_platform_checksums(data: Dict[str, Any]) -> PlatformChecksums:
    """Collect the ``{os: {arch: {algorithm, checksum}}}`` entries of a detail.

    Platform checksums sit inline next to ``name``/``url`` in the catalog, so
    every key that is not a reserved field is treated as an OS name.
    """
    checksums: PlatformChecksums = {}
    for os_name, arches in data.items():
        if os_name in _RESERVED_KEYS:
            continue
        if not isinstance(arches, dict):
            raise ValueError(f"platform entry '{os_name}' must be a mapping of architectures")
        checksums[os_name] = {}
        for arch, value in arches.items():
            if not isinstance(value, dict) or 'algorithm' not in value or 'checksum' not in value:
                raise ValueError(f"checksum for '{os_name}/{arch}' must define algorithm and checksum")
            checksums[os_name][arch] = Checksum(algorithm=str(value['algorithm']), value=str(value['checksum']))
    return checksums


@dataclass
class ArchiveDetail:
    """A compressed archive downloaded from a URL."""
    name: str
    url: str
    platform_checksums: PlatformChecksums = field(default_factory=dict)

    def checksum_for(self, os_name: str, arch: str) -> Optional[Checksum]:
        return self.platform_checksums.get(os_name, {}).get(arch)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArchiveDetail':
        return cls(name=data['name'], url=data['url'], platform_checksums=parse_platform_checksums(data))


@dataclass
class BinaryDetail:
    """An executable either downloaded directly or taken from an archive.

    For archive binaries, ``name`` is the path of the file relative to the
    unpack folder.
    """
    name: str
    url: Optional[str] = None
    archive: Optional[str] = None
    platform_checksums: PlatformChecksums = field(default_factory=dict)

    def checksum_for(self, os_name: str, arch: str) -> Optional[Checksum]:
        return self.platform_checksums.get(os_name, {}).get(arch)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BinaryDetail':
        return cls(
            name=data['name'],
            url=data.get('url') or None,
            archive=data.get('archive') or None,
            platform_checksums=parse_platform_checksums(data),
        )


@dataclass
class ConfigDetail:
    """A configuration file, usually platform independent."""
    name: str
    url: Optional[str] = None
    archive: Optional[str] = None
    platform_checksums: PlatformChecksums = field(default_factory=dict)
    algorithm: Optional[str] = None
    checksum: Optional[str] = None

    def checksum_for(self, os_name: str, arch: str) -> Optional[Checksum]:
        """Return the platform checksum, falling back to the flat one."""
        platform_checksum = self.platform_checksums.get(os_name, {}).get(arch)
        if platform_checksum is not None:
            return platform_checksum
        if self.algorithm and self.checksum:
            return Checksum(algorithm=self.algorithm, value=self.checksum)
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigDetail':
        return cls(
            name=data['name'],
            url=data.get('url') or None,
            archive=data.get('archive') or None,
            platform_checksums=parse_platform_checksums(data),
            algorithm=data.get('algorithm'),
            checksum=data.get('checksum'),
        )


@dataclass
class VersionDetails:
    """Archives, binaries and configs that make up one version of a software."""
    archives: List[ArchiveDetail] = field(default_factory=list)
    binaries: List[BinaryDetail] = field(default_factory=list)
    configs: List[ConfigDetail] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'VersionDetails':
        data = data or {}
        return cls(
            archives=[ArchiveDetail.from_dict(a) for a in data.get('archives') or []],
            binaries=[BinaryDetail.from_dict(b) for b in data.get('binaries') or []],
            configs=[ConfigDetail.from_dict(c) for c in data.get('configs') or []],
        )

    def get_archives(self) -> List[ArchiveDetail]:
        return sorted((replace(a) for a in self.archives), key=lambda a: a.name)

    def get_binaries(self) -> List[BinaryDetail]:
        return sorted((replace(b) for b in self.binaries), key=lambda b: b.name)

    def binaries_by_url(self) -> List[BinaryDetail]:
        """Binaries downloaded directly from their own URL."""
        return [b for b in self.get_binaries() if b.url]

    def binaries_by_archive(self) -> List[BinaryDetail]:
        """Binaries extracted from an archive."""
        return [b for b in self.get_binaries() if b.archive]

    def get_configs(self) -> List[ConfigDetail]:
        return sorted((replace(c) for c in self.configs), key=lambda c: c.name)

    def configs_by_url(self) -> List[ConfigDetail]:
        """Configs downloaded directly, i.e. with a URL and no archive."""
        return [c for c in self.get_configs() if c.url and not c.archive]

    def configs_by_archive(self) -> List[ConfigDetail]:
        return [c for c in self.get_configs() if c.archive]

    def get_archive_by_name(self, name: str) -> ArchiveDetail:
        for archive in self.archives:
            if archive.name == name:
                return archive
        raise ArtifactFileNotFoundError(f"archive '{name}'")

    def get_binary_by_name(self, name: str) -> BinaryDetail:
        for binary in self.binaries:
            if binary.name == name:
                return binary
        raise ArtifactFileNotFoundError(f"binary '{name}'")

    def get_config_by_name(self, name: str) -> ConfigDetail:
        for config in self.configs:
            if config.name == name:
                return config
        raise ArtifactFileNotFoundError(f"config '{name}'")


@dataclass
class TemplateData:
    """Variables available to catalog templates."""
    VERSION: str
    OS: str
    ARCH: str

    def as_dict(self) -> Dict[str, str]:
        return {'VERSION': self.VERSION, 'OS': self.OS, 'ARCH': self.ARCH}
