"""Software lifecycle commands."""

import logging
from typing import Optional

import typer

from ..modules.software.errors import SoftwareError
from ..modules.software.registry import new_installer
from ..modules.software.workflow import download_software, setup_software, teardown_software
from . import fail

logger = logging.getLogger("weaver.commands.software")

app = typer.Typer(help="Install, configure and remove node software")


def _summary(result) -> None:
    typer.echo(f"{result.software} {result.version}: " + ", ".join(
        [f"{step} done" for step in result.completed] + [f"{step} skipped" for step in result.skipped]))
    for warning in result.warnings:
        typer.secho(f"⚠️  {warning}", fg=typer.colors.YELLOW)


@app.command()
def install(
    name: str = typer.Argument(..., help="Software name, e.g. kubectl or cri-o"),
    version: Optional[str] = typer.Option(None, '--version', '-v', help="Version, latest if omitted"),
    configure: bool = typer.Option(True, '--configure/--no-configure', help="Configure after installing"),
    keep_downloads: bool = typer.Option(False, '--keep-downloads', help="Keep the download folder"),
    proxy_addr: Optional[str] = typer.Option(None, '--proxy-addr', help="Teleport proxy address"),
    join_token: Optional[str] = typer.Option(None, '--join-token', help="Teleport join token"),
):
    """Download, install and configure a software."""
    try:
        installer = new_installer(name, version, proxy_addr=proxy_addr, join_token=join_token)
        result = setup_software(installer, configure=configure, cleanup=not keep_downloads)
    except SoftwareError as e:
        raise fail(e)
    _summary(result)
    typer.secho(f"✅ {result.software} {result.version} is ready", fg=typer.colors.GREEN)


@app.command()
def uninstall(
    name: str = typer.Argument(..., help="Software name"),
    version: Optional[str] = typer.Option(None, '--version', '-v', help="Installed version, latest if omitted"),
):
    """Remove the configuration and the sandbox files of a software."""
    try:
        result = teardown_software(new_installer(name, version))
    except SoftwareError as e:
        raise fail(e)
    _summary(result)


@app.command()
def download(
    name: str = typer.Argument(..., help="Software name"),
    version: Optional[str] = typer.Option(None, '--version', '-v', help="Version, latest if omitted"),
):
    """Download and unpack a software without installing it."""
    try:
        result = download_software(new_installer(name, version))
    except SoftwareError as e:
        raise fail(e)
    _summary(result)


@app.command()
def status(
    name: str = typer.Argument(..., help="Software name"),
    version: Optional[str] = typer.Option(None, '--version', '-v', help="Version, latest if omitted"),
):
    """Show whether a software version is installed and configured."""
    try:
        installer = new_installer(name, version)
        installed = installer.is_installed()
        configured = installer.is_configured()
    except SoftwareError as e:
        raise fail(e)

    def mark(flag: bool) -> str:
        return "yes" if flag else "no"

    typer.echo(f"📡 {installer.name} {installer.version}")
    typer.echo(f"   installed:  {mark(installed)}")
    typer.echo(f"   configured: {mark(configured)}")


@app.command()
def cleanup(
    name: str = typer.Argument(..., help="Software name"),
    version: Optional[str] = typer.Option(None, '--version', '-v', help="Version, latest if omitted"),
):
    """Delete the download folder of a software."""
    try:
        installer = new_installer(name, version)
        installer.cleanup()
    except SoftwareError as e:
        raise fail(e)
    typer.echo(f"🧹 Removed downloads of {installer.name}")
