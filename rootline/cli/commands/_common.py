"""Helpers shared by the CLI commands: settings, remotes, error exits."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console

from rootline.bridge.content_store import KuboContentStore
from rootline.bridge.registry import RootRegistry, open_registry
from rootline.config import RootlineSettings
from rootline.core.local_state import LocalState
from rootline.errors import (
    BackendFault,
    ConfigurationError,
    ConflictError,
    LocalStateError,
    RegistryOutcomeUnknownError,
    RootlineError,
    VerificationError,
)

console = Console()
err_console = Console(stderr=True)

# Most specific first.
EXIT_CODES: list[tuple[type[RootlineError], int]] = [
    (ConfigurationError, 3),
    (VerificationError, 4),
    (ConflictError, 5),
    (RegistryOutcomeUnknownError, 6),
    (BackendFault, 7),
    (LocalStateError, 8),
]

_HINTS: dict[type[RootlineError], str] = {
    ConflictError: "Another writer advanced the root. Refresh local state and push again.",
    RegistryOutcomeUnknownError: (
        "The registry may or may not have applied the update. "
        "Check the current root before retrying."
    ),
    VerificationError: (
        "The remote hashed content differently. Check hashing parameters "
        "and that tracked files have not changed since 'add'."
    ),
}


def exit_code_for(exc: RootlineError) -> int:
    for cls, code in EXIT_CODES:
        if isinstance(exc, cls):
            return code
    return 1


def fail(exc: RootlineError) -> NoReturn:
    """Print *exc* with a hint and exit with its kind's code."""
    err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
    for cls, hint in _HINTS.items():
        if isinstance(exc, cls):
            err_console.print(f"[dim]{hint}[/dim]")
            break
    raise typer.Exit(code=exit_code_for(exc))


def load_settings() -> RootlineSettings:
    return RootlineSettings()


def local_state(settings: RootlineSettings, working_dir: Path) -> LocalState:
    return LocalState(working_dir, settings.state_dir)


def open_content_store(settings: RootlineSettings) -> KuboContentStore:
    if not settings.api_url:
        raise ConfigurationError("content store API URL is not set (ROOTLINE_API_URL)")
    return KuboContentStore(
        settings.content_remote,
        timeout_seconds=settings.request_timeout_seconds,
        probe_offline=settings.probe_offline,
    )


def open_root_registry(settings: RootlineSettings) -> RootRegistry:
    if not settings.registry_url:
        raise ConfigurationError("registry URL is not set (ROOTLINE_REGISTRY_URL)")
    return open_registry(
        settings.registry_url,
        timeout_seconds=settings.registry_timeout_seconds,
        authorized_keys=settings.authorized_keys,
    )


WORKING_DIR_OPTION = typer.Option(
    Path("."),
    "--dir",
    "-C",
    help="Working directory holding the manifest.",
    file_okay=False,
)
