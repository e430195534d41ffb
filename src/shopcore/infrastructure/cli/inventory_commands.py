"""CLI commands for inventory inspection."""

from __future__ import annotations

import asyncio

import click

from shopcore.domain.exceptions import DomainException
from shopcore.infrastructure.bootstrap import handlers


@click.command("show")
def inventory_show() -> None:
    """Show on-hand, reserved and available units per variant."""
    try:
        lines = asyncio.run(handlers().show_inventory.handle())
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(
        f"{'Product':<24} {'Variant':<26} {'Color':<10} {'Size':<5} "
        f"{'On hand':>8} {'Reserved':>9} {'Available':>10}"
    )
    click.echo("-" * 98)
    for line in lines:
        click.echo(
            f"{line.product_name:<24} {line.variant_id:<26} {line.color:<10} {line.size:<5} "
            f"{line.quantity:>8} {line.reserved:>9} {line.available:>10}"
        )
