# src/kubefeed/cli/main.py
"""
This module is the main entry point for the KubeFeed CLI.
"""

import logging

import typer

from ..core.config import config
from . import start

# --- Setup Logger ---
logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="kubefeed",
    help="Keep an autoscaler's cluster state in sync with the Kubernetes cluster.",
    add_completion=False,
)


def version_callback(value: bool):
    if value:
        from .. import __version__

        typer.echo(f"KubeFeed version: {__version__}")
        raise typer.Exit()


@app.command()
def version():
    """
    Show the version of KubeFeed.
    """
    from .. import __version__

    typer.echo(f"KubeFeed version: {__version__}")


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    KubeFeed CLI main entry point.
    """
    pass


app.add_typer(start.app, name="start")


if __name__ == "__main__":
    app()
