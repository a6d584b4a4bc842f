"""``rootline log`` — walk the published root history."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from rootline.bridge.gateway import Gateway
from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
)
from rootline.core.cid import ContentId
from rootline.core.history import ContentReader, walk_history
from rootline.errors import ConfigurationError, RootlineError
from rootline.models.manifest import Manifest


async def _collect(
    reader: ContentReader, root: ContentId, limit: int
) -> list[tuple[ContentId, Manifest]]:
    return [item async for item in walk_history(reader, root, limit=limit)]


def log_cmd(
    root: str = typer.Option(
        None, "--root", "-r", help="Start from this root instead of the local one."
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum entries to show."),
    working_dir: Path = WORKING_DIR_OPTION,
) -> None:
    """List published roots, newest first."""
    settings = load_settings()
    try:
        if root:
            try:
                start = ContentId.parse(root)
            except ValueError as exc:
                raise ConfigurationError(f"--root: {exc}") from exc
        else:
            start = local_state(settings, working_dir).load_root()
        if start is None:
            console.print("[dim]Nothing has been pushed yet.[/dim]")
            return
        gateway = Gateway(settings.gateway_url, timeout_seconds=settings.request_timeout_seconds)
        history = asyncio.run(_collect(gateway, start, limit))
    except RootlineError as exc:
        fail(exc)

    table = Table(title=f"History of {settings.namespace}")
    table.add_column("#", justify="right")
    table.add_column("Root", style="cyan")
    table.add_column("Objects", justify="right")
    table.add_column("Previous")
    for i, (cid, manifest) in enumerate(history):
        table.add_row(
            str(i),
            str(cid),
            str(len(manifest.objects)),
            str(manifest.previous_root) if manifest.previous_root else "-",
        )
    console.print(table)
