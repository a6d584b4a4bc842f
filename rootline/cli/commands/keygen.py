"""``rootline keygen`` — generate an Ed25519 signing key."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from rootline.bridge.crypto_bridge import Signer
from rootline.cli.commands._common import console


def keygen_cmd(
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the private seed to this file (mode 0600).",
        dir_okay=False,
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing key file."),
) -> None:
    """Generate a signing key and print its public half."""
    signer = Signer.generate()
    if output is not None:
        if output.exists() and not force:
            console.print(f"[bold red]Refusing to overwrite[/bold red] {output} (use --force)")
            raise typer.Exit(code=1)
        output.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(output, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(signer.private_key_hex() + "\n")
        console.print(f"[bold]Private key:[/bold] {output}")
    else:
        console.print(f"[bold]Private key:[/bold] {signer.private_key_hex()}")
    console.print(f"[bold]Public key:[/bold]  {signer.public_key}")
    console.print(f"[dim]Fingerprint: {signer.fingerprint}[/dim]")
