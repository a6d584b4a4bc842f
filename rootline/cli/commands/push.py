"""``rootline push`` — publish the manifest and advance the registry root.

Exit codes distinguish the failure kinds so scripts can choose a retry
policy: 3 configuration, 4 verification, 5 conflict, 6 registry outcome
unknown, 7 backend fault, 8 local state.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.panel import Panel

from rootline.cli.commands._common import (
    WORKING_DIR_OPTION,
    console,
    fail,
    load_settings,
    local_state,
    open_content_store,
    open_root_registry,
)
from rootline.config import RootlineSettings
from rootline.core.push import PushOrchestrator
from rootline.errors import RootlineError
from rootline.models.push import PushReport


async def _push(settings: RootlineSettings, working_dir: Path) -> PushReport:
    state = local_state(settings, working_dir)
    registry = open_root_registry(settings)
    signer = settings.load_signer()
    async with open_content_store(settings) as store:
        orchestrator = PushOrchestrator(
            store,
            registry,
            signer,
            namespace=settings.namespace,
            local_state=state,
            max_concurrency=settings.max_concurrency,
        )
        return await orchestrator.push_working_dir()


def push_cmd(working_dir: Path = WORKING_DIR_OPTION) -> None:
    """Upload missing objects, publish the manifest, advance the root."""
    settings = load_settings()
    try:
        settings.require_remotes()
        report = asyncio.run(_push(settings, working_dir))
    except RootlineError as exc:
        fail(exc)

    console.print(
        Panel(
            "\n".join([
                "[bold green]Push committed.[/bold green]",
                "",
                f"[bold]Namespace:[/bold]  {report.namespace}",
                f"[bold]Root:[/bold]       {report.previous_root or 'unset'} -> {report.new_root}",
                f"[bold]Sequence:[/bold]   {report.registry_sequence}",
                f"[bold]Uploaded:[/bold]   {len(report.uploaded)}",
                f"[bold]Present:[/bold]    {len(report.skipped)}",
            ]),
            title="[bold]rootline push[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
