"""Host helpers for the software installers."""

import logging
import os
import platform
import secrets
import socket
from typing import Dict, Tuple

logger = logging.getLogger("weaver.software.utils")

_ARCH_ALIASES = {
    'x86_64': 'amd64',
    'amd64': 'amd64',
    'aarch64': 'arm64',
    'arm64': 'arm64',
}

KUBEADM_TOKEN_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"


def detect_platform() -> Tuple[str, str]:
    """Return the host ``(os, arch)`` using catalog naming (e.g. ``linux``, ``amd64``)."""
    os_name = platform.system().lower()
    machine = platform.machine().lower()
    return os_name, _ARCH_ALIASES.get(machine, machine)


def read_os_release(path: str = "/etc/os-release") -> Dict[str, str]:
    """Parse an os-release file into a dictionary.

    Returns:
        dict: Key/value pairs, empty if the file cannot be read
    """
    values: Dict[str, str] = {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                values[key] = value.strip().strip('"').strip("'")
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
    return values


def get_os_vendor(path: str = "/etc/os-release") -> str:
    """Return the lowercase OS vendor (``ID`` plus ``ID_LIKE``) of the host."""
    release = read_os_release(path)
    return " ".join(filter(None, [release.get('ID', ''), release.get('ID_LIKE', '')])).lower()


def get_sysconfig_dir(os_release_path: str = "/etc/os-release") -> str:
    """Return the sysconfig directory for the host distribution.

    Debian based distributions use ``/etc/default``, everything else
    ``/etc/sysconfig``.
    """
    vendor = get_os_vendor(os_release_path)
    if 'debian' in vendor or 'ubuntu' in vendor:
        return os.path.join('/etc', 'default')
    return os.path.join('/etc', 'sysconfig')


def get_machine_ip() -> str:
    """Get the primary IP address of the current machine.

    Returns:
        str: IP address or '127.0.0.1' if detection fails
    """
    try:
        # No packets are sent for a UDP connect, it only selects a route
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError as e:
        logger.warning(f"Failed to detect machine IP: {e}")
        return '127.0.0.1'


def generate_kubeadm_token() -> str:
    """Generate a kubeadm bootstrap token of the form ``[a-z0-9]{6}.[a-z0-9]{16}``."""
    def part(length: int) -> str:
        return ''.join(secrets.choice(KUBEADM_TOKEN_CHARS) for _ in range(length))

    return f"{part(6)}.{part(16)}"
