"""``rootline rm PATH...`` — stop tracking files."""

from __future__ import annotations

from pathlib import Path

import typer

from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
)
from rootline.core.tracking import untrack_paths
from rootline.errors import RootlineError


def rm_cmd(
    paths: list[Path] = typer.Argument(..., help="Tracked files to drop from the manifest."),
    working_dir: Path = WORKING_DIR_OPTION,
) -> None:
    """Remove manifest entries; the files themselves stay on disk."""
    settings = load_settings()
    try:
        state = local_state(settings, working_dir)
        rel_paths = [state.relative_path(path) for path in paths]
        untrack_paths(state, rel_paths)
    except RootlineError as exc:
        fail(exc)
    for path in rel_paths:
        console.print(f"  [red]untracked[/red] {path}")
