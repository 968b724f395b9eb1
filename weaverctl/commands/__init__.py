"""Command groups of the weaverctl CLI."""
import logging

import typer

from ..config import get_config
from ..modules.software.errors import ChecksumError, SoftwareError, exit_code_for, safe_error_details

logger = logging.getLogger("weaver.commands")

BUNDLED_CATALOG_HINT = (
    "the bundled catalog ships placeholder digests; set catalog_path in the config "
    "or WEAVER_CATALOG_PATH to a catalog with the published checksums"
)


def uses_bundled_catalog() -> bool:
    return get_config().catalog_path is None


def fail(err: Exception, debug: bool = False) -> typer.Exit:
    """Report an error and return the Exit carrying its exit code."""
    typer.secho(f"❌ {err}", fg=typer.colors.RED, err=True)
    if isinstance(err, SoftwareError):
        details = safe_error_details(err)
        if details:
            typer.echo(f"   details: {', '.join(details)}", err=True)
        if err.kind == ChecksumError.kind and uses_bundled_catalog():
            typer.echo(f"   hint: {BUNDLED_CATALOG_HINT}", err=True)
    logger.debug("Command failed", exc_info=debug)
    return typer.Exit(code=exit_code_for(err))
