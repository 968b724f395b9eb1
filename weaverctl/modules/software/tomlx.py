"""Read, patch and check TOML configuration files.

Values are addressed by dotted keys (``crio.runtime.default_runtime``).
Files are edited with tomlkit so comments and layout of the untouched parts
are preserved.
"""

import logging
import os
from typing import Any, Dict, Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.toml_document import TOMLDocument

from .errors import FileSystemError

logger = logging.getLogger("weaver.software.tomlx")

_MISSING = object()


def _unwrap(value: Any) -> Any:
    if hasattr(value, 'unwrap'):
        return value.unwrap()
    return value


def load_toml(path: str) -> TOMLDocument:
    """Parse a TOML file, an empty document if the file does not exist.

    Raises:
        FileSystemError: If the file cannot be read or parsed
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return tomlkit.parse(f.read())
    except FileNotFoundError:
        return tomlkit.document()
    except (OSError, TOMLKitError) as e:
        raise FileSystemError(f"failed to load TOML file {path}", e, path) from e


def get_nested_value(doc: Dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    node: Any = doc
    for part in dotted_key.split('.'):
        if not hasattr(node, 'get'):
            return default
        node = node.get(part, _MISSING)
        if node is _MISSING:
            return default
    return _unwrap(node)


def set_nested_value(doc: Dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set a value, creating intermediate tables as needed."""
    parts = dotted_key.split('.')
    node: Any = doc
    for part in parts[:-1]:
        if part not in node or not hasattr(node[part], 'get'):
            node[part] = tomlkit.table() if isinstance(doc, TOMLDocument) else {}
        node = node[part]
    node[parts[-1]] = value


def update_toml_file(path: str, values: Dict[str, Any], mode: int = 0o644) -> None:
    """Apply dotted-key ``values`` to the TOML file at ``path``.

    Raises:
        FileSystemError: If the file cannot be read, parsed or written
    """
    doc = load_toml(path)
    for key, value in values.items():
        set_nested_value(doc, key, value)

    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(tomlkit.dumps(doc))
        os.chmod(path, mode)
    except OSError as e:
        raise FileSystemError(f"failed to write TOML file {path}", e, path) from e
    logger.debug(f"Updated {len(values)} keys in {path}")


def diff_toml_file(path: str, values: Dict[str, Any]) -> Dict[str, Optional[Any]]:
    """Return the keys whose current value differs from ``values``.

    Returns:
        dict: dotted key -> current value (None when missing)
    """
    doc = load_toml(path)
    mismatched = {}
    for key, expected in values.items():
        actual = get_nested_value(doc, key)
        if actual != expected:
            mismatched[key] = actual
    return mismatched
