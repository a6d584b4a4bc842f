"""``rootline init`` — create the local state directory."""

from __future__ import annotations

from pathlib import Path

from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
)
from rootline.errors import RootlineError


def init_cmd(working_dir: Path = WORKING_DIR_OPTION) -> None:
    """Initialize an empty manifest in the working directory."""
    state = local_state(load_settings(), working_dir)
    try:
        created = state.init()
    except RootlineError as exc:
        fail(exc)
    if created:
        console.print(f"[bold green]Initialized[/bold green] {state.state_dir}")
    else:
        console.print(f"[yellow]Already initialized:[/yellow] {state.state_dir}")
