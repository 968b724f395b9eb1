import logging
import sys
from typing import Optional

import typer

from weaverctl.commands import catalog, fail, software
from weaverctl.config import WeaverConfig, set_config
from weaverctl.logger import configure_logging
from weaverctl.modules.software.errors import ConfigLoadError

app = typer.Typer()

# Global debug flag
debug_mode = False

# Add all command groups
app.add_typer(software.app, name="software")
app.add_typer(catalog.app, name="catalog")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a weaver config file"),
):
    """weaverctl - node software provisioning CLI."""
    global debug_mode
    debug_mode = debug
    try:
        config = WeaverConfig.load(config_path)
    except ConfigLoadError as e:
        configure_logging(None, debug)
        raise fail(e, debug)
    set_config(config)
    configure_logging(config.logging, debug)


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        logging.error(f"Error: {e}", exc_info=debug_mode)
        sys.exit(1)
