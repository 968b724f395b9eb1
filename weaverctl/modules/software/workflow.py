"""Run installer lifecycle steps in order."""

import logging
from dataclasses import dataclass, field
from typing import List

from .base import Software
from .errors import CleanupError

logger = logging.getLogger("weaver.software.workflow")


@dataclass
class WorkflowResult:
    """Outcome of a setup or teardown run."""
    software: str
    version: str
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _cleanup(installer: Software, result: WorkflowResult) -> None:
    try:
        installer.cleanup()
        result.completed.append("cleanup")
    except CleanupError as e:
        logger.warning(f"⚠️  {e}")
        result.warnings.append(str(e))


def setup_software(installer: Software, configure: bool = True, cleanup: bool = True) -> WorkflowResult:
    """Download, extract, install and configure a software.

    Install and configure are skipped when their state markers already
    record the target version. A failing cleanup only produces a warning.
    """
    result = WorkflowResult(installer.name, installer.version)
    logger.info(f"🚀 Setting up {installer.name} {installer.version}")

    installer.download()
    result.completed.append("download")
    installer.extract()
    result.completed.append("extract")

    if installer.is_installed():
        logger.info(f"✅ {installer.name} {installer.version} already installed")
        result.skipped.append("install")
    else:
        installer.install()
        result.completed.append("install")

    if configure:
        if installer.is_configured():
            logger.info(f"✅ {installer.name} {installer.version} already configured")
            result.skipped.append("configure")
        else:
            installer.configure()
            result.completed.append("configure")

    if cleanup:
        _cleanup(installer, result)
    return result


def teardown_software(installer: Software) -> WorkflowResult:
    """Remove the configuration, uninstall and clean up a software."""
    result = WorkflowResult(installer.name, installer.version)
    logger.info(f"🧹 Tearing down {installer.name} {installer.version}")

    installer.remove_configuration()
    result.completed.append("remove_configuration")
    installer.uninstall()
    result.completed.append("uninstall")
    _cleanup(installer, result)
    return result


def download_software(installer: Software) -> WorkflowResult:
    """Only fetch and unpack the artifacts, e.g. to pre-stage a node."""
    result = WorkflowResult(installer.name, installer.version)
    installer.download()
    result.completed.append("download")
    installer.extract()
    result.completed.append("extract")
    return result
