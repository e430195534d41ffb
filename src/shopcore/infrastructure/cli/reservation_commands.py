"""CLI commands for reservation maintenance."""

from __future__ import annotations

import asyncio

import click

from shopcore.domain.exceptions import DomainException
from shopcore.infrastructure.bootstrap import handlers


@click.command("release-expired")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(min=1), help="Maximum orders per run.")
def reservations_release_expired(limit: int) -> None:
    """Free the stock of unpaid orders whose hold has expired."""
    try:
        summary = asyncio.run(handlers().release_expired.handle(batch_limit=limit))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Scanned {summary.scanned} order(s), released {summary.released}.")
