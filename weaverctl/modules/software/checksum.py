"""File integrity verification."""

import hashlib
import logging

from .errors import ArtifactFileNotFoundError, ChecksumError, UnsupportedAlgorithmError

logger = logging.getLogger("weaver.software.checksum")

SUPPORTED_ALGORITHMS = ("md5", "sha256", "sha512")

_CHUNK_SIZE = 1024 * 1024


def compute_checksum(file_path: str, algorithm: str) -> str:
    """Compute the hex digest of a file.

    Args:
        file_path: Path of the file to hash
        algorithm: One of ``md5``, ``sha256`` or ``sha512``

    Returns:
        str: Lowercase hex digest of the whole file

    Raises:
        UnsupportedAlgorithmError: If the algorithm is not supported
        ArtifactFileNotFoundError: If the file cannot be opened
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedAlgorithmError(file_path, algorithm, "")

    digest = hashlib.new(algorithm)
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
        raise ArtifactFileNotFoundError(file_path, e) from e
    except OSError as e:
        raise ChecksumError(file_path, algorithm, "", "", cause=e) from e

    return digest.hexdigest()


def verify_checksum(file_path: str, expected_value: str, algorithm: str) -> None:
    """Verify that a file matches the expected digest.

    The comparison is case-insensitive.

    Raises:
        UnsupportedAlgorithmError: If the algorithm is not supported
        ArtifactFileNotFoundError: If the file does not exist or is not readable
        ChecksumError: If the digest does not match
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedAlgorithmError(file_path, algorithm, expected_value)

    actual = compute_checksum(file_path, algorithm)
    if actual != (expected_value or "").strip().lower():
        logger.debug("Checksum mismatch for %s (%s): expected %s, got %s",
                     file_path, algorithm, expected_value, actual)
        raise ChecksumError(file_path, algorithm, expected_value, actual)
