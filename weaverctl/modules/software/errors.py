"""Error types raised by the software installation engine.

Every error carries structured properties (software name, version, URL,
file path, platform, checksum details, HTTP status) next to the formatted
message so that callers can build diagnostics without parsing strings.
"""

from typing import Any, Dict, List, Optional


class SoftwareError(Exception):
    """Base class for all software lifecycle errors."""

    kind = "software_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None, **properties: Any):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.properties: Dict[str, Any] = {k: v for k, v in properties.items() if v is not None}
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **properties: Any) -> "SoftwareError":
        """Add properties the error does not carry yet and return it."""
        for key, value in properties.items():
            if value is not None:
                self.properties.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ConfigLoadError(SoftwareError):
    kind = "config_load_error"

    def __init__(self, cause: Optional[BaseException] = None, path: Optional[str] = None):
        super().__init__("failed to load software configuration", cause, file_path=path)


class SoftwareNotFoundError(SoftwareError):
    kind = "software_not_found"

    def __init__(self, software_name: str):
        super().__init__(
            f"software '{software_name}' not found in configuration",
            software_name=software_name,
        )


class VersionNotFoundError(SoftwareError):
    kind = "version_not_found"

    def __init__(self, software_name: str, version: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"version '{version}' not found for software '{software_name}'",
            cause,
            software_name=software_name,
            version=version,
        )


class PlatformNotFoundError(SoftwareError):
    kind = "platform_not_found"

    def __init__(self, software_name: str, version: str, os_name: str, arch: str):
        super().__init__(
            f"platform '{os_name}/{arch}' not supported for software '{software_name}' version '{version}'",
            software_name=software_name,
            version=version,
            os=os_name,
            arch=arch,
        )


class DownloadError(SoftwareError):
    kind = "download_error"

    def __init__(self, url: str, cause: Optional[BaseException] = None, status_code: Optional[int] = None,
                 reason: Optional[str] = None):
        message = f"failed to download from URL '{url}'"
        if status_code:
            message += f" (HTTP {status_code})"
        if reason:
            message += f": {reason}"
        super().__init__(message, cause, url=url, status_code=status_code or None)

    @property
    def status_code(self) -> Optional[int]:
        return self.properties.get("status_code")


class ChecksumError(SoftwareError):
    kind = "checksum_error"

    def __init__(self, file_path: str, algorithm: str, expected: str, actual: str = "",
                 cause: Optional[BaseException] = None):
        super().__init__(
            f"checksum verification failed for file '{file_path}' using algorithm '{algorithm}' "
            f"[ expected = '{expected}', actual = '{actual}' ]",
            cause,
            file_path=file_path,
            algorithm=algorithm,
            expected_hash=expected,
            actual_hash=actual,
        )


class UnsupportedAlgorithmError(ChecksumError):
    kind = "unsupported_algorithm"

    def __init__(self, file_path: str, algorithm: str, expected: str):
        super().__init__(file_path, algorithm, expected)
        self.message = f"unsupported checksum algorithm '{algorithm}' for file '{file_path}'"


class ExtractionError(SoftwareError):
    kind = "extraction_error"

    def __init__(self, file_path: str, dest_path: str, cause: Optional[BaseException] = None,
                 reason: Optional[str] = None):
        message = f"failed to extract file '{file_path}' to '{dest_path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, cause, file_path=file_path)


class ArtifactFileNotFoundError(SoftwareError):
    kind = "file_not_found"

    def __init__(self, file_path: str, cause: Optional[BaseException] = None):
        super().__init__(f"file not found: '{file_path}'", cause, file_path=file_path)


class InstallationError(SoftwareError):
    kind = "installation_error"

    def __init__(self, software_name: str, version: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"failed to install software '{software_name}' version '{version}'",
            cause,
            software_name=software_name,
            version=version,
        )


class UninstallationError(SoftwareError):
    kind = "uninstallation_error"

    def __init__(self, software_name: str, version: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"failed to uninstall software '{software_name}' version '{version}'",
            cause,
            software_name=software_name,
            version=version,
        )


class ConfigurationError(SoftwareError):
    kind = "configuration_error"

    def __init__(self, software_name: str, cause: Optional[BaseException] = None, reason: Optional[str] = None):
        message = f"failed to configure software '{software_name}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, cause, software_name=software_name)


class CleanupError(SoftwareError):
    kind = "cleanup_error"

    def __init__(self, download_folder: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"failed to clean up download folder {download_folder} after installation",
            cause,
            file_path=download_folder,
        )


class FileSystemError(SoftwareError):
    kind = "filesystem_error"

    def __init__(self, reason: str, cause: Optional[BaseException] = None, path: Optional[str] = None):
        super().__init__(f"filesystem error: {reason}", cause, file_path=path)


class TemplateError(SoftwareError):
    kind = "template_error"

    def __init__(self, software_name: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"failed to execute template for software '{software_name}'",
            cause,
            software_name=software_name,
        )


class PathTraversalError(SoftwareError):
    kind = "path_traversal_error"

    def __init__(self, entry_name: str, base: Optional[str] = None):
        message = f"path traversal detected: entry '{entry_name}' attempts to escape"
        message += f" '{base}'" if base else " extraction directory"
        super().__init__(message, file_path=entry_name)


class InvalidURLError(SoftwareError):
    kind = "invalid_url_error"

    def __init__(self, url: str, reason: Optional[str] = None):
        message = f"invalid or unsafe URL: '{url}'"
        if reason:
            message += f" ({reason})"
        super().__init__(message, url=url)


# Ordering of the properties reported by safe_error_details
SAFE_PROPERTIES = (
    "software_name", "version", "url", "file_path", "os", "arch",
    "algorithm", "expected_hash", "actual_hash", "status_code",
)

EXIT_CODES: Dict[str, int] = {
    ConfigLoadError.kind: 10,
    SoftwareNotFoundError.kind: 11,
    VersionNotFoundError.kind: 12,
    PlatformNotFoundError.kind: 13,
    DownloadError.kind: 20,
    InvalidURLError.kind: 21,
    ChecksumError.kind: 22,
    UnsupportedAlgorithmError.kind: 22,
    ExtractionError.kind: 23,
    PathTraversalError.kind: 24,
    ArtifactFileNotFoundError.kind: 25,
    InstallationError.kind: 30,
    UninstallationError.kind: 31,
    ConfigurationError.kind: 32,
    CleanupError.kind: 33,
    FileSystemError.kind: 40,
    TemplateError.kind: 41,
}


def safe_error_details(err: Optional[SoftwareError]) -> List[str]:
    """Return the PII-safe property values of an error as strings."""
    if err is None:
        return []
    return [str(err.properties[key]) for key in SAFE_PROPERTIES if key in err.properties]


def exit_code_for(err: BaseException) -> int:
    """Map an exception to the CLI exit code for its kind."""
    if isinstance(err, SoftwareError):
        return EXIT_CODES.get(err.kind, 1)
    return 1
