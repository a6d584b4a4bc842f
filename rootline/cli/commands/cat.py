"""``rootline cat CID [PATH]`` — fetch published bytes via the gateway."""

from __future__ import annotations

import asyncio
import sys

import typer

from rootline.bridge.gateway import Gateway
from rootline.cli.commands._common import fail, load_settings
from rootline.core.cid import ContentId
from rootline.errors import ConfigurationError, RootlineError


def cat_cmd(
    cid: str = typer.Argument(..., help="CID to fetch."),
    path: str = typer.Argument(None, help="Optional path inside structured content."),
) -> None:
    """Write the content at CID (and PATH) to stdout."""
    settings = load_settings()
    try:
        try:
            target = ContentId.parse(cid)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        gateway = Gateway(settings.gateway_url, timeout_seconds=settings.request_timeout_seconds)
        data = asyncio.run(gateway.fetch(target, path))
    except RootlineError as exc:
        fail(exc)
    sys.stdout.buffer.write(data)
    sys.stdout.flush()
