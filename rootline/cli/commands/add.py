"""``rootline add PATH...`` — record files in the manifest."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
    open_content_store,
)
from rootline.config import RootlineSettings
from rootline.core.tracking import track_paths
from rootline.errors import RootlineError


async def _add(settings: RootlineSettings, working_dir: Path, paths: list[Path]) -> list[str]:
    state = local_state(settings, working_dir)
    async with open_content_store(settings) as store:
        _, changed = await track_paths(
            state, store, paths, max_concurrency=settings.max_concurrency
        )
    return changed


def add_cmd(
    paths: list[Path] = typer.Argument(..., help="Files or directories to track."),
    working_dir: Path = WORKING_DIR_OPTION,
) -> None:
    """Hash files with the content store's parameters and track them."""
    settings = load_settings()
    try:
        changed = asyncio.run(_add(settings, working_dir, paths))
    except RootlineError as exc:
        fail(exc)
    if not changed:
        console.print("[dim]Nothing changed.[/dim]")
        return
    for path in changed:
        console.print(f"  [green]tracked[/green] {path}")
