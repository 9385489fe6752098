"""Flask CLI commands for deterministic development database seeding."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from authgate.api.deps import get_auth_service
from authgate.models import ROLE_ADMIN, ROLE_USER
from authgate.services._shared.errors import ConflictError, ServiceError
from authgate.services.auth import AuthGateService, RegisterIn

LOGGER = logging.getLogger(__name__)

DEFAULT_PASSWORD = "password123"

#: ``(username, role)`` pairs created by ``flask seed run``.
SEED_ACCOUNTS: tuple[tuple[str, str], ...] = (
    ("admin", ROLE_ADMIN),
    ("user", ROLE_USER),
)


def _configure_logging(verbose: bool) -> None:
    """Raise logging verbosity for seed modules when requested."""
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


def seed_accounts(service: AuthGateService, password: str) -> dict[str, int]:
    """Create the default accounts that do not exist yet.

    :param service: Gate used to register accounts.
    :type service: AuthGateService
    :param password: Password applied to newly created accounts.
    :type password: str
    :returns: ``{"created": n, "existing": m}``.
    :rtype: dict[str, int]
    """
    summary = {"created": 0, "existing": 0}
    for username, role in SEED_ACCOUNTS:
        try:
            service.register(RegisterIn(username=username, password=password), role=role)
        except ConflictError:
            LOGGER.debug("Seed account %s already present", username)
            summary["existing"] += 1
        else:
            LOGGER.debug("Seed account %s created with role %s", username, role)
            summary["created"] += 1
    return summary


@click.group("seed")
@click.option("--verbose", is_flag=True, help="Enable verbose logging for seeding.")
@click.pass_context
def seed_cli(ctx: click.Context, verbose: bool) -> None:
    """Collection of database seeding commands."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


@seed_cli.command("run")
@click.option(
    "--password",
    default=DEFAULT_PASSWORD,
    show_default=True,
    help="Password for newly created seed accounts.",
)
@with_appcontext
def run_command(password: str) -> None:
    """Idempotently create the ``admin`` (Admin) and ``user`` (User) accounts."""
    try:
        summary = seed_accounts(get_auth_service(), password)
    except ServiceError as exc:
        raise click.ClickException(f"Seeding failed: {exc}") from exc
    click.echo("Seed summary:")
    click.echo(f"  users  created={summary['created']:>2}  existing={summary['existing']:>2}")
