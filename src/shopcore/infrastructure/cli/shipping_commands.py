"""CLI commands for shipping settings."""

from __future__ import annotations

import asyncio

import click

from shopcore.domain.exceptions import DomainException
from shopcore.infrastructure.bootstrap import handlers


def _parse_fees(raw: tuple[str, ...]) -> dict[str, str]:
    """Parse ('Lagos=2500', 'Abuja=4000') into {location: fee}."""
    fees: dict[str, str] = {}
    for pair in raw:
        if "=" not in pair:
            raise click.BadParameter(
                f"Invalid fee format '{pair}'. Expected 'LOCATION=AMOUNT'."
            )
        location, amount = pair.rsplit("=", 1)
        fees[location.strip()] = amount.strip()
    return fees


@click.command("show")
def shipping_show() -> None:
    """Show location fees and the free-shipping threshold."""
    try:
        settings = asyncio.run(handlers().show_shipping.handle())
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Free shipping from: {settings.free_shipping_threshold}")
    if not settings.location_fees:
        click.echo("No location fees configured.")
        return
    for location, fee in sorted(settings.location_fees.items()):
        click.echo(f"  {location:<24} {str(fee):>14}")


@click.command("set")
@click.option("--threshold", required=True, help="Free-shipping threshold (e.g. 50000).")
@click.option("--fee", "fees", multiple=True, help="Location fee as 'LOCATION=AMOUNT'.")
def shipping_set(threshold: str, fees: tuple[str, ...]) -> None:
    """Replace shipping settings."""
    try:
        settings = asyncio.run(handlers().update_shipping.handle(_parse_fees(fees), threshold))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Shipping settings saved ({len(settings.location_fees)} location(s), "
        f"free from {settings.free_shipping_threshold})."
    )
