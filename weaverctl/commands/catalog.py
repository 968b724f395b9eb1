"""Artifact catalog commands."""

import typer

from ..config import get_config
from ..modules.software.catalog import ArtifactCollection
from ..modules.software.errors import SoftwareError
from . import BUNDLED_CATALOG_HINT, fail, uses_bundled_catalog

app = typer.Typer(help="Inspect the artifact catalog")


def _load() -> ArtifactCollection:
    return ArtifactCollection.load(get_config().catalog_path)


@app.command("list")
def list_software():
    """List every software in the catalog with its latest version."""
    try:
        catalog = _load()
        rows = [(name, catalog.get_artifact_by_name(name).get_latest_version()) for name in catalog.names()]
    except SoftwareError as e:
        raise fail(e)
    for name, latest in rows:
        typer.echo(f"{name:<12} {latest}")
    if uses_bundled_catalog():
        typer.secho(f"⚠️  {BUNDLED_CATALOG_HINT}", fg=typer.colors.YELLOW, err=True)


@app.command()
def versions(name: str = typer.Argument(..., help="Software name")):
    """List the known versions of a software, newest first."""
    try:
        artifact = _load().get_artifact_by_name(name)
        ordered = artifact.sorted_versions()
    except SoftwareError as e:
        raise fail(e)
    for i, version in enumerate(ordered):
        suffix = "  (latest)" if i == 0 else ""
        typer.echo(f"{version}{suffix}")
