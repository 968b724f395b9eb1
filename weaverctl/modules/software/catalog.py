"""Artifact catalog: which files make up each version of each software.

The catalog is a YAML document with a top level ``artifact`` list::

    artifact:
      - name: kubectl
        versions:
          "1.33.4":
            binaries:
              - name: kubectl
                url: https://dl.k8s.io/release/v{{ VERSION }}/bin/{{ OS }}/{{ ARCH }}/kubectl
                linux:
                  amd64:
                    algorithm: sha256
                    checksum: ...

Names, URLs and archive references are Jinja2 templates resolved against
the target version and the platform of the host.
"""

import logging
import os
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple, Union

import semver
import yaml

from .errors import (
    ArtifactFileNotFoundError,
    ConfigLoadError,
    PlatformNotFoundError,
    SoftwareNotFoundError,
    VersionNotFoundError,
)
from .models import (
    ArchiveDetail,
    BinaryDetail,
    Checksum,
    ConfigDetail,
    TemplateData,
    VersionDetails,
)
from .render import render_string
from .utils import detect_platform

logger = logging.getLogger("weaver.software.catalog")

DEFAULT_CATALOG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'artifact.yaml')

Detail = Union[ArchiveDetail, BinaryDetail, ConfigDetail]


class ArtifactMetadata:
    """A software and all of its known versions."""

    def __init__(self, name: str, versions: Dict[str, VersionDetails],
                 platform: Optional[Tuple[str, str]] = None):
        self.name = name
        self.versions = versions
        self._platform = platform

    def __repr__(self) -> str:
        return f"ArtifactMetadata(name={self.name!r}, versions={sorted(self.versions)!r})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArtifactMetadata':
        name = data.get('name')
        if not name:
            raise ValueError("artifact entry without a name")
        versions = {
            str(version): VersionDetails.from_dict(details)
            for version, details in (data.get('versions') or {}).items()
        }
        return cls(name=str(name), versions=versions)

    def with_platform(self, os_name: str, arch: str) -> 'ArtifactMetadata':
        """Return a copy pinned to the given platform instead of the host."""
        return ArtifactMetadata(self.name, self.versions, platform=(os_name, arch))

    @property
    def platform(self) -> Tuple[str, str]:
        if self._platform is None:
            return detect_platform()
        return self._platform

    def sorted_versions(self) -> List[str]:
        """Return the version keys ordered by semver precedence, newest first.

        Pre-releases sort below their release. Every key must be a valid
        semantic version; a single invalid key makes the whole lookup fail.

        Raises:
            VersionNotFoundError: If any key is not a semantic version
        """
        parsed = []
        for key in self.versions:
            try:
                parsed.append((semver.Version.parse(key), key))
            except (ValueError, TypeError) as e:
                raise VersionNotFoundError(self.name, key, e) from e
        return [key for _, key in sorted(parsed, reverse=True)]

    def get_latest_version(self) -> str:
        """Return the highest version of this software.

        Raises:
            VersionNotFoundError: If there are no versions or any is invalid
        """
        if not self.versions:
            raise VersionNotFoundError(self.name, "any")
        return self.sorted_versions()[0]

    def get_version_details(self, version: str) -> VersionDetails:
        details = self.versions.get(version)
        if details is None:
            raise VersionNotFoundError(self.name, version)
        return details

    def template_data(self, version: str) -> TemplateData:
        os_name, arch = self.platform
        return TemplateData(VERSION=version, OS=os_name, ARCH=arch)

    def resolve(self, template: str, version: str) -> str:
        """Render a catalog template for ``version`` on the current platform."""
        return render_string(template, self.template_data(version).as_dict(), owner=self.name)

    def _resolve_optional(self, value: Optional[str], version: str) -> Optional[str]:
        return self.resolve(value, version) if value else value

    def resolve_archives(self, version: str) -> List[ArchiveDetail]:
        return [
            replace(a, name=self.resolve(a.name, version), url=self.resolve(a.url, version))
            for a in self.get_version_details(version).get_archives()
        ]

    def resolve_binaries(self, version: str) -> List[BinaryDetail]:
        return [
            replace(
                b,
                name=self.resolve(b.name, version),
                url=self._resolve_optional(b.url, version),
                archive=self._resolve_optional(b.archive, version),
            )
            for b in self.get_version_details(version).get_binaries()
        ]

    def resolve_configs(self, version: str) -> List[ConfigDetail]:
        return [
            replace(
                c,
                name=self.resolve(c.name, version),
                url=self._resolve_optional(c.url, version),
                archive=self._resolve_optional(c.archive, version),
            )
            for c in self.get_version_details(version).get_configs()
        ]

    def get_configs(self, version: str) -> List[ConfigDetail]:
        return self.resolve_configs(version)

    def checksum_for(self, detail: Detail, version: str) -> Checksum:
        """Return the checksum of one detail for the current platform.

        Raises:
            PlatformNotFoundError: If no checksum exists for the platform
        """
        os_name, arch = self.platform
        checksum = detail.checksum_for(os_name, arch)
        if checksum is None:
            raise PlatformNotFoundError(self.name, version, os_name, arch)
        return checksum

    def _primary_detail(self, version: str) -> Union[ArchiveDetail, BinaryDetail]:
        archives = self.resolve_archives(version)
        if archives:
            return archives[0]
        for binary in self.resolve_binaries(version):
            if binary.url:
                return binary
        raise ArtifactFileNotFoundError(f"download artifact for '{self.name}' version '{version}'")

    def get_download_url(self, version: str) -> str:
        """URL of the first archive, or of the first directly downloaded binary."""
        return self._primary_detail(version).url

    def get_filename(self, version: str) -> str:
        return os.path.basename(self._primary_detail(version).name)

    def get_checksum(self, version: str) -> Checksum:
        """Checksum of the primary artifact for the current platform.

        Raises:
            VersionNotFoundError: If the version is unknown
            PlatformNotFoundError: If the version has no checksum for the platform
        """
        return self.checksum_for(self._primary_detail(version), version)


class ArtifactCollection:
    """All software known to the catalog."""

    def __init__(self, artifacts: List[ArtifactMetadata]):
        self.artifacts = artifacts

    @classmethod
    def from_dict(cls, data: Any) -> 'ArtifactCollection':
        if not isinstance(data, dict) or not isinstance(data.get('artifact'), list):
            raise ValueError("catalog must contain an 'artifact' list")

        artifacts: List[ArtifactMetadata] = []
        seen = set()
        for entry in data['artifact']:
            item = ArtifactMetadata.from_dict(entry)
            if item.name in seen:
                raise ValueError(f"duplicate artifact name '{item.name}'")
            seen.add(item.name)
            artifacts.append(item)
        return cls(artifacts)

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'ArtifactCollection':
        """Load the catalog from ``path`` or from the bundled ``artifact.yaml``.

        Raises:
            ConfigLoadError: If the file cannot be read or has the wrong shape
        """
        path = path or DEFAULT_CATALOG_PATH
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
            collection = cls.from_dict(data)
        except (OSError, yaml.YAMLError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise ConfigLoadError(e, path) from e

        logger.debug(f"Loaded {len(collection.artifacts)} artifacts from {path}")
        return collection

    def get_artifact_by_name(self, name: str) -> ArtifactMetadata:
        for item in self.artifacts:
            if item.name == name:
                return item
        raise SoftwareNotFoundError(name)

    def names(self) -> List[str]:
        return sorted(item.name for item in self.artifacts)
