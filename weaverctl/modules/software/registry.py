"""Installer factory."""

import inspect
import logging
from typing import Any, Dict, Optional, Type

from .base import BaseInstaller, Software, SoftwareInstaller
from .catalog import ArtifactCollection
from .cilium import CiliumInstaller
from .crio import CrioInstaller
from .kubeadm import KubeadmInstaller
from .kubelet import KubeletInstaller
from .teleport import TeleportNodeAgentInstaller

logger = logging.getLogger("weaver.software.registry")

SPECIALIZED_INSTALLERS: Dict[str, Type[SoftwareInstaller]] = {
    cls.software_name: cls
    for cls in (CrioInstaller, KubeadmInstaller, KubeletInstaller, TeleportNodeAgentInstaller, CiliumInstaller)
}


def new_installer(name: str, version: Optional[str] = None, config=None,
                  catalog: Optional[ArtifactCollection] = None, **options: Any) -> Software:
    """Create the installer for ``name``.

    Software without a specialized installer (kubectl, helm, k9s, ...) gets a
    plain :class:`BaseInstaller`. ``options`` go to the constructor of the
    specialized installer; unset (None) options are dropped and options it
    does not accept are ignored with a warning.

    Raises:
        ConfigLoadError, SoftwareNotFoundError, VersionNotFoundError
    """
    options = {k: v for k, v in options.items() if v is not None}
    installer_cls = SPECIALIZED_INSTALLERS.get(name)
    accepted = set(inspect.signature(installer_cls).parameters) if installer_cls else set()
    ignored = sorted(k for k in options if k not in accepted)
    if ignored:
        logger.warning(f"Ignoring options {ignored} for {name}")
    options = {k: v for k, v in options.items() if k in accepted}

    if installer_cls is None:
        return BaseInstaller.create(name, version, config, catalog)
    return installer_cls.create(version, config, catalog, **options)
