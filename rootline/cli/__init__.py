"""Rootline CLI — Typer-based command-line interface.

Provides the ``rootline`` command with subcommands for initializing a
working directory, tracking files, pushing a new root, and reading the
published history back through a gateway.

All output uses Rich for formatted terminal display.
"""
