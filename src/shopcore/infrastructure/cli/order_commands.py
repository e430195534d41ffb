"""CLI commands for the Order aggregate."""

from __future__ import annotations

import asyncio
import json

import click

from shopcore.application.dto import CheckoutRequest, OrderDTO, order_to_dto
from shopcore.domain.exceptions import DomainException
from shopcore.domain.model.order import OrderStatus
from shopcore.domain.model.value_objects import Address
from shopcore.infrastructure.bootstrap import handlers
from shopcore.infrastructure.cli.cart_commands import parse_items


def _load_addresses(file_path: str) -> tuple[Address, Address | None, bool]:
    """Read a guest address file.

    Either a bare address object, or ``{"shipping_address": {...},
    "billing_address": {...}, "same_as_shipping": false}``.
    """
    with open(file_path, encoding="utf-8") as fh:
        try:
            raw = json.load(fh)
        except ValueError as exc:
            raise click.ClickException(f"Invalid JSON in {file_path}: {exc}")
    if not isinstance(raw, dict):
        raise click.ClickException("Address file must contain a JSON object")

    try:
        if "shipping_address" not in raw:
            return Address.create(**raw), None, True
        billing = raw.get("billing_address")
        return (
            Address.create(**raw["shipping_address"]),
            Address.create(**billing) if billing else None,
            bool(raw.get("same_as_shipping", billing is None)),
        )
    except TypeError as exc:
        raise click.ClickException(f"Unexpected address field: {exc}")


def display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (id={dto.id})")
    click.echo(f"Customer: {dto.customer}")
    click.echo(f"Status:   {dto.order_status}  payment={dto.payment_status}")
    click.echo(f"Created:  {dto.created_at}")
    if dto.paid_at:
        click.echo(f"Paid:     {dto.paid_at}")
    click.echo(f"Stock:    {dto.reservation}")
    if dto.deduction_error:
        click.echo(f"Deduction failed: {dto.deduction_error}")
    click.echo()

    click.echo(f"  {'Product':<24} {'Color':<10} {'Size':<5} {'Qty':>4} {'Price':>14} {'Total':>16}")
    click.echo(f"  {'-'*78}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<24} {item.color:<10} {item.size:<5} {item.quantity:>4} "
            f"{item.unit_price:>14} {item.line_total:>16}"
        )
    click.echo(f"  {'-'*78}")
    for label, value in (
        ("Subtotal", dto.subtotal),
        ("Shipping", dto.shipping),
        ("Tax", dto.tax),
        ("Order Total", dto.total),
    ):
        click.echo(f"  {label:<60} {value:>18}")


@click.command("checkout")
@click.option("--items", required=True, help="Items as 'ProductId:VariantId:Qty,...'.")
@click.option("--location", default=None, help="Shipping location.")
@click.option("--user-id", default=None, help="Registered user (ships to address on file).")
@click.option(
    "--address-file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Guest shipping (and billing) address as JSON.",
)
def order_checkout(
    items: str, location: str | None, user_id: str | None, address_file: str | None
) -> None:
    """Place an order, hold its stock and open a payment page."""
    if user_id and address_file:
        raise click.ClickException("Use either --user-id or --address-file, not both")
    if not user_id and not address_file:
        raise click.ClickException("Guest checkout requires --address-file")

    shipping_address = billing_address = None
    same_as_shipping = True
    if address_file:
        shipping_address, billing_address, same_as_shipping = _load_addresses(address_file)

    request = CheckoutRequest(
        items=parse_items(items),
        shipping_location=location,
        shipping_address=shipping_address,
        billing_address=billing_address,
        same_as_shipping=same_as_shipping,
    )
    try:
        result = asyncio.run(handlers().checkout.handle(user_id, request))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {result.order_number} placed  (id={result.order_id})")
    click.echo(f"Total:        {result.total}")
    click.echo(f"Stock held until {result.reservation_expires_at}")
    click.echo(f"Pay at:       {result.payment_url}")
    click.echo(f"Transaction:  {result.transaction_reference}")


@click.command("show")
@click.option("--id", "order_id", default=None, help="Order ID to display.")
@click.option("--number", "order_number", default=None, help="Order number to display.")
def order_show(order_id: str | None, order_number: str | None) -> None:
    """Show details of an existing order."""
    try:
        dto = asyncio.run(handlers().show_order.handle(order_id, order_number))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    display_order(dto)


@click.command("status")
@click.option("--id", "order_id", required=True, help="Order ID.")
@click.option(
    "--to",
    "status",
    required=True,
    type=click.Choice([s.value for s in OrderStatus]),
    help="New order status.",
)
@click.option("--reason", default=None, help="Cancellation reason.")
def order_status(order_id: str, status: str, reason: str | None) -> None:
    """Move an order along fulfillment (or cancel / fail it)."""
    try:
        order = asyncio.run(handlers().update_order_status.handle(order_id, status, reason))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {order.order_number} is now {order.order_status.value}.")


@click.command("retry-deduction")
@click.option("--transaction-ref", required=True, help="Gateway transaction reference.")
def order_retry_deduction(transaction_ref: str) -> None:
    """Re-run stock deduction for a paid order pinned by a deduction failure."""
    try:
        order = asyncio.run(
            handlers().confirm_paid_order.handle(transaction_ref, retry_failed=True)
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    display_order(order_to_dto(order))
