"""CLI commands for cart pricing."""

from __future__ import annotations

import asyncio

import click

from shopcore.application.dto import cart_to_dto
from shopcore.domain.exceptions import DomainException
from shopcore.domain.model.cart import CartLine, LegacyCartLine
from shopcore.infrastructure.bootstrap import handlers


def parse_items(raw: str) -> list[tuple[str, str, int]]:
    """Parse 'PID:VID:3,PID:VID:1' into (product id, variant id, quantity) triples."""
    items: list[tuple[str, str, int]] = []
    for triple in raw.split(","):
        triple = triple.strip()
        parts = triple.split(":")
        if len(parts) != 3:
            raise click.BadParameter(
                f"Invalid item format '{triple}'. Expected 'ProductId:VariantId:Quantity'."
            )
        product_id, variant_id, qty_str = (p.strip() for p in parts)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        items.append((product_id, variant_id, qty))
    return items


@click.command("price")
@click.option("--items", required=True, help="Items as 'ProductId:VariantId:Qty,...'.")
@click.option("--location", default=None, help="Shipping location.")
@click.option(
    "--legacy",
    is_flag=True,
    default=False,
    help="Items carry numeric id fingerprints instead of ids.",
)
def cart_price(items: str, location: str | None, legacy: bool) -> None:
    """Price a cart against the live catalog."""
    parsed = parse_items(items)
    handler = handlers().price_cart
    try:
        if legacy:
            try:
                lines = [LegacyCartLine(int(p), int(v), q) for p, v, q in parsed]
            except ValueError:
                raise click.BadParameter("Legacy items need numeric fingerprints.")
            cart = asyncio.run(handler.handle_legacy(lines, location))
        else:
            cart = asyncio.run(
                handler.handle([CartLine(p, v, q) for p, v, q in parsed], location)
            )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if cart is None:
        raise click.ClickException("Unable to price cart, see log for details")

    dto = cart_to_dto(cart)
    click.echo(f"  {'Product':<24} {'Color':<10} {'Size':<5} {'Qty':>4} {'Total':>16}")
    click.echo(f"  {'-'*63}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<24} {item.color:<10} {item.size:<5} "
            f"{item.quantity:>4} {item.line_total:>16}"
        )
    click.echo(f"  {'-'*63}")
    for label, value in (
        ("Subtotal", dto.subtotal),
        ("Shipping", dto.shipping),
        ("Tax", dto.tax),
        ("Total", dto.total),
    ):
        click.echo(f"  {label:<44} {value:>18}")
