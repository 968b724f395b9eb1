"""Secure artifact downloads and archive extraction.

The downloader only talks to hosts on an allowlist and only writes inside a
configured base directory. Redirects are followed by hand so that every hop
is validated against the same allowlist before it is requested.
"""

import logging
import os
import shutil
import stat
import tarfile
import time
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

import requests

from .errors import (
    ArtifactFileNotFoundError,
    DownloadError,
    ExtractionError,
    InvalidURLError,
    PathTraversalError,
)

logger = logging.getLogger("weaver.software.downloader")

DEFAULT_TIMEOUT = 30 * 60  # 30 minutes, large archives
MAX_REDIRECTS = 10
CHUNK_SIZE = 64 * 1024

DEFAULT_DIR_PERM = 0o755

# Trusted sources for software downloads. Subdomains of these are allowed too.
DEFAULT_ALLOWED_DOMAINS = [
    # Google Cloud Storage, used by CRI-O and several Kubernetes components
    "storage.googleapis.com",
    "dl.google.com",
    # GitHub releases and content
    "github.com",
    "githubusercontent.com",
    # Kubernetes
    "dl.k8s.io",
    "packages.cloud.google.com",
    # Container registries
    "gcr.io",
    "registry.k8s.io",
    "quay.io",
    # Helm
    "charts.helm.sh",
    "get.helm.sh",
    "releases.hashicorp.com",
    # Teleport
    "cdn.teleport.dev",
    "hashgraph.teleport.sh",
]


def is_allowed_host(host: str, allowed_domains: Iterable[str]) -> bool:
    """Check whether a host is an allowlisted domain or one of its subdomains."""
    host = (host or "").lower().rstrip(".")
    if not host:
        return False
    for domain in allowed_domains:
        domain = domain.lower().strip().rstrip(".")
        if not domain:
            continue
        if host == domain or host.endswith("." + domain):
            return True
    return False


def validate_url(url: str, allowed_domains: Iterable[str], allowed_schemes: Iterable[str] = ("https",)) -> str:
    """Validate a download URL and return its host.

    Raises:
        InvalidURLError: If the URL is malformed, uses a disallowed scheme,
            embeds credentials or points at a host outside the allowlist
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        raise InvalidURLError(url, "malformed URL")

    if parsed.scheme.lower() not in tuple(allowed_schemes):
        raise InvalidURLError(url, f"scheme '{parsed.scheme}' is not allowed")
    if parsed.username or parsed.password:
        raise InvalidURLError(url, "credentials in URL are not allowed")

    host = parsed.hostname or ""
    if not host:
        raise InvalidURLError(url, "missing host")
    if not is_allowed_host(host, allowed_domains):
        raise InvalidURLError(url, f"host '{host}' is not in the allowed domain list")
    return host


def _is_within(base: str, target: str) -> bool:
    return target == base or target.startswith(base.rstrip(os.sep) + os.sep)


def validate_path_within_base(base_path: str, target: str) -> str:
    """Resolve ``target`` and make sure it stays inside ``base_path``.

    Symlinks and ``..`` segments are resolved before the comparison.

    Returns:
        str: The canonical target path

    Raises:
        PathTraversalError: If the resolved path escapes the base directory
    """
    base = os.path.realpath(base_path)
    resolved = os.path.realpath(os.path.join(base, target))
    if not _is_within(base, resolved):
        raise PathTraversalError(target, base)
    return resolved


class Downloader:
    """Downloads software packages and unpacks gzip-compressed tar archives."""

    def __init__(
        self,
        base_path: str,
        allowed_domains: Optional[List[str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        allowed_schemes: Iterable[str] = ("https",),
    ):
        self.base_path = base_path
        self.allowed_domains = list(allowed_domains if allowed_domains is not None else DEFAULT_ALLOWED_DOMAINS)
        self.allowed_schemes = tuple(allowed_schemes)
        self.timeout = timeout
        # requests honours HTTP_PROXY, HTTPS_PROXY and NO_PROXY from the environment
        self.session = session or requests.Session()
        self.session.max_redirects = MAX_REDIRECTS

    def download(self, url: str, destination: str) -> None:
        """Download ``url`` into ``destination``.

        Raises:
            InvalidURLError: If the URL fails validation
            PathTraversalError: If the destination is outside the base path
            DownloadError: On transport errors, untrusted redirects, too many
                redirects, non-200 responses or an expired deadline
        """
        validate_url(url, self.allowed_domains, self.allowed_schemes)
        clean_dest = validate_path_within_base(self.base_path, destination)

        deadline = time.monotonic() + self.timeout
        response = self._get_following_redirects(url, deadline)

        partial = clean_dest + ".part"
        try:
            if response.status_code != 200:
                raise DownloadError(url, status_code=response.status_code)

            logger.debug("Downloading %s -> %s", url, clean_dest)
            with open(partial, "wb") as out:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise DownloadError(url, TimeoutError(f"download exceeded {self.timeout}s"))
                    if chunk:
                        out.write(chunk)
            os.replace(partial, clean_dest)
        except requests.RequestException as e:
            raise DownloadError(url, e) from e
        except OSError as e:
            raise DownloadError(url, e) from e
        finally:
            response.close()
            if os.path.exists(partial):
                os.remove(partial)

    def _get_following_redirects(self, url: str, deadline: float) -> requests.Response:
        current = url
        for hop in range(MAX_REDIRECTS + 1):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise DownloadError(url, TimeoutError(f"download exceeded {self.timeout}s"))
            try:
                response = self.session.get(current, stream=True, allow_redirects=False, timeout=remaining)
            except requests.RequestException as e:
                raise DownloadError(url, e) from e

            if not response.is_redirect:
                return response

            location = urljoin(current, response.headers["location"])
            response.close()
            if hop == MAX_REDIRECTS:
                raise DownloadError(url, reason=f"stopped after {MAX_REDIRECTS} redirects")

            host = urlparse(location).hostname or ""
            try:
                validate_url(location, self.allowed_domains, self.allowed_schemes)
            except InvalidURLError as e:
                raise DownloadError(
                    url, e, reason=f"redirect to untrusted domain '{host}': not in the allowed domain list"
                ) from e

            logger.debug("Following redirect %d: %s -> %s", hop + 1, current, location)
            current = location

        # the loop either returns or raises
        raise DownloadError(url, reason=f"stopped after {MAX_REDIRECTS} redirects")

    def extract(self, archive_path: str, dest_dir: str) -> None:
        """Extract a ``.tar.gz`` archive into ``dest_dir``.

        Only directories and regular files are accepted. Every entry is
        resolved against the destination and rejected if it would land
        outside of it.

        Raises:
            PathTraversalError: If a path or an entry escapes its base
            ArtifactFileNotFoundError: If the archive does not exist
            ExtractionError: On corrupt archives, unsupported entry types,
                I/O errors or an expired deadline
        """
        clean_archive = validate_path_within_base(self.base_path, archive_path)
        clean_dest = validate_path_within_base(self.base_path, dest_dir)

        if not os.path.isfile(clean_archive):
            raise ArtifactFileNotFoundError(clean_archive)

        deadline = time.monotonic() + self.timeout
        try:
            os.makedirs(clean_dest, DEFAULT_DIR_PERM, exist_ok=True)
            with tarfile.open(clean_archive, "r:gz") as tar:
                for member in tar:
                    if time.monotonic() > deadline:
                        raise ExtractionError(clean_archive, clean_dest,
                                              TimeoutError(f"extraction exceeded {self.timeout}s"))
                    self._extract_member(tar, member, clean_archive, clean_dest)
        except (ExtractionError, PathTraversalError):
            raise
        except (tarfile.TarError, OSError, EOFError) as e:
            raise ExtractionError(clean_archive, clean_dest, e) from e

        logger.debug("Extracted %s into %s", clean_archive, clean_dest)

    @staticmethod
    def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo, archive: str, dest: str) -> None:
        target = os.path.realpath(os.path.join(dest, member.name))
        if not _is_within(dest, target):
            raise PathTraversalError(member.name, dest)

        if member.isdir():
            os.makedirs(target, DEFAULT_DIR_PERM, exist_ok=True)
        elif member.isreg():
            os.makedirs(os.path.dirname(target), DEFAULT_DIR_PERM, exist_ok=True)
            source = tar.extractfile(member)
            if source is None:
                raise ExtractionError(archive, dest, reason=f"cannot read entry '{member.name}'")
            with source, open(target, "wb") as out:
                shutil.copyfileobj(source, out)
            os.chmod(target, stat.S_IMODE(member.mode))
        else:
            raise ExtractionError(archive, dest, reason=f"unknown type flag: {member.type!r} for '{member.name}'")
