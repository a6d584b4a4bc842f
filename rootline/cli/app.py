"""Main Typer application — imports and registers all CLI commands.

Entry point: ``rootline`` (configured via pyproject.toml project scripts).
"""

from __future__ import annotations

import logging

import typer

from rootline.cli.commands._common import load_settings
from rootline.cli.commands.add import add_cmd
from rootline.cli.commands.cat import cat_cmd
from rootline.cli.commands.init import init_cmd
from rootline.cli.commands.keygen import keygen_cmd
from rootline.cli.commands.log import log_cmd
from rootline.cli.commands.push import push_cmd
from rootline.cli.commands.rm import rm_cmd
from rootline.cli.commands.status import status_cmd

app = typer.Typer(
    name="rootline",
    help="Rootline: publish a content-addressed manifest and advance a signed root.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Python logging level (DEBUG, INFO, WARNING, ...).",
    ),
) -> None:
    """Configure logging before any subcommand runs."""
    level = log_level or load_settings().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="init", help="Create the local state directory.")(init_cmd)
app.command(name="keygen", help="Generate an Ed25519 signing key.")(keygen_cmd)
app.command(name="add", help="Track files in the local manifest.")(add_cmd)
app.command(name="rm", help="Stop tracking files; they stay on disk.")(rm_cmd)
app.command(name="status", help="Show the local root and tracked objects.")(status_cmd)
app.command(name="push", help="Publish the manifest and advance the registry root.")(push_cmd)
app.command(name="log", help="Walk the published root history.")(log_cmd)
app.command(name="cat", help="Fetch published content through the gateway.")(cat_cmd)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
