"""Thin file-system layer used by the installers.

Every failure is raised as :class:`FileSystemError` carrying the path.
"""

import logging
import os
import shutil
from typing import List

from .errors import FileSystemError
from .paths import DEFAULT_DIR_OR_EXEC_PERM

logger = logging.getLogger("weaver.software.fsx")


class FileManager:
    """File operations with consistent error reporting."""

    def path_exists(self, path: str) -> bool:
        """True if ``path`` exists; dangling symlinks count as existing."""
        return os.path.lexists(path)

    def is_regular_file(self, path: str) -> bool:
        return os.path.isfile(path) and not os.path.islink(path)

    def create_directory(self, path: str, mode: int = DEFAULT_DIR_OR_EXEC_PERM) -> None:
        try:
            os.makedirs(path, mode, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"failed to create directory {path}", e, path) from e

    def list_dir(self, path: str) -> List[str]:
        """Sorted entries of a directory, empty if it does not exist."""
        try:
            return sorted(os.listdir(path))
        except FileNotFoundError:
            return []
        except OSError as e:
            raise FileSystemError(f"failed to list directory {path}", e, path) from e

    def read_file(self, path: str) -> str:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            raise FileSystemError(f"failed to read {path}", e, path) from e

    def write_file(self, path: str, content: str, mode: int = 0o644) -> None:
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, DEFAULT_DIR_OR_EXEC_PERM, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
            os.chmod(path, mode)
        except OSError as e:
            raise FileSystemError(f"failed to write {path}", e, path) from e

    def copy_file(self, src: str, dst: str, mode: int = 0o644) -> None:
        """Copy ``src`` over ``dst`` (creating parents) and set ``mode``."""
        try:
            os.makedirs(os.path.dirname(dst), DEFAULT_DIR_OR_EXEC_PERM, exist_ok=True)
            if os.path.islink(dst):
                os.remove(dst)
            shutil.copyfile(src, dst)
            os.chmod(dst, mode)
        except OSError as e:
            raise FileSystemError(f"failed to copy {src} to {dst}", e, dst) from e

    def write_permissions(self, path: str, mode: int) -> None:
        try:
            os.chmod(path, mode)
        except OSError as e:
            raise FileSystemError(f"failed to set permissions on {path}", e, path) from e

    def create_symbolic_link(self, target: str, link: str, overwrite: bool = True) -> None:
        """Point ``link`` at ``target``, replacing an existing file or link if asked."""
        try:
            parent = os.path.dirname(link)
            if parent:
                os.makedirs(parent, DEFAULT_DIR_OR_EXEC_PERM, exist_ok=True)
            if os.path.lexists(link):
                if not overwrite:
                    raise FileExistsError(f"{link} already exists")
                if os.path.isdir(link) and not os.path.islink(link):
                    raise IsADirectoryError(f"{link} is a directory, refusing to replace it")
                os.remove(link)
            os.symlink(target, link)
        except OSError as e:
            raise FileSystemError(f"failed to link {link} -> {target}", e, link) from e
        logger.debug(f"Linked {link} -> {target}")

    def is_symlink_to(self, link: str, target: str) -> bool:
        """True if ``link`` is a symlink resolving to ``target``."""
        if not os.path.islink(link):
            return False
        return os.path.realpath(link) == os.path.realpath(target)

    def remove_all(self, path: str) -> None:
        """Remove a file, symlink or directory tree; missing paths are ignored."""
        try:
            if os.path.islink(path) or os.path.isfile(path):
                os.remove(path)
            elif os.path.isdir(path):
                shutil.rmtree(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise FileSystemError(f"failed to remove {path}", e, path) from e
