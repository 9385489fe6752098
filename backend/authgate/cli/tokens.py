"""Flask CLI commands for refresh token maintenance."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from authgate.api.deps import get_token_manager
from authgate.services._shared.errors import StoreUnavailable


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh token maintenance commands."""


@tokens_cli.command("cleanup")
@with_appcontext
def cleanup_command() -> None:
    """Delete revoked or expired refresh tokens past the retention window."""
    manager = get_token_manager()
    try:
        deleted = manager.cleanup_expired()
    except StoreUnavailable as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted {deleted} refresh token(s).")
