"""``rootline status`` — show the local root and manifest."""

from __future__ import annotations

from pathlib import Path

from rich.table import Table

from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
)
from rootline.errors import RootlineError


def status_cmd(working_dir: Path = WORKING_DIR_OPTION) -> None:
    """Print the last committed root and the tracked objects."""
    settings = load_settings()
    state = local_state(settings, working_dir)
    try:
        root = state.load_root()
        manifest = state.load_manifest()
    except RootlineError as exc:
        fail(exc)

    console.print(f"[bold]Namespace:[/bold]     {settings.namespace}")
    console.print(f"[bold]Local root:[/bold]    {root or '[dim]none (never pushed)[/dim]'}")
    console.print(f"[bold]Previous root:[/bold] {manifest.previous_root or '[dim]none[/dim]'}")

    if not manifest.objects:
        console.print("[dim]No tracked objects.[/dim]")
        return

    table = Table(title=f"Tracked objects ({len(manifest.objects)})")
    table.add_column("Path", style="cyan")
    table.add_column("CID")
    table.add_column("Size", justify="right")
    for path, obj in manifest.entries():
        table.add_row(path, str(obj.cid), str(obj.size_bytes))
    console.print(table)
