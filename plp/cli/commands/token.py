"""plp token: issue an admin bearer token for scripts and ``plp sync``."""
from __future__ import annotations

import logging

import typer

from plp.auth import AccessCodeError, generate_access_code, get_token_expiration
from plp.cli.errors import ExitCode
from plp.config import settings

logger = logging.getLogger(__name__)

app = typer.Typer()


@app.callback(invoke_without_command=True)
def token(
    ctx: typer.Context,
    hours: int | None = typer.Option(
        None,
        "--hours",
        help="Validity in hours. Defaults to PLP_ACCESS_TOKEN_EXPIRY_HOURS.",
    ),
    email: str | None = typer.Option(
        None,
        "--email",
        help="Subject to embed in the token. Defaults to the admin e-mail.",
    ),
) -> None:
    """Print a signed admin token to stdout.

    Example::

        export PLP_TOKEN=$(plp token --hours 2)
    """
    if hours is not None and hours <= 0:
        typer.echo("❌ --hours must be positive")
        raise typer.Exit(code=int(ExitCode.USER_ERROR))
    try:
        issued = generate_access_code(
            subject=email or settings.admin_email,
            duration_hours=hours,
            is_admin=True,
        )
    except AccessCodeError as exc:
        typer.echo(f"❌ {exc}", err=True)
        raise typer.Exit(code=int(ExitCode.USER_ERROR))

    typer.echo(issued)
    logger.info(f"✅ Issued admin token, expires {get_token_expiration(issued).isoformat()}")
