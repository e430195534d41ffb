"""CLI commands for gateway payments."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import click

from shopcore.application.dto import order_to_dto
from shopcore.domain.exceptions import DomainException
from shopcore.infrastructure.bootstrap import handlers
from shopcore.infrastructure.cli.order_commands import display_order


@click.command("verify")
@click.option(
    "--reference",
    required=True,
    help="Transaction reference, gateway payment reference or order number.",
)
def payment_verify(reference: str) -> None:
    """Ask the gateway for a payment's status and apply it."""
    try:
        order = asyncio.run(handlers().verify_payment.handle(reference))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    display_order(order_to_dto(order))


@click.command("webhook")
@click.option(
    "--payload-file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Raw webhook body as delivered.",
)
@click.option("--signature", required=True, help="Value of the monnify-signature header.")
def payment_webhook(payload_file: str, signature: str) -> None:
    """Process a payment webhook delivery."""
    raw_body = Path(payload_file).read_bytes()
    try:
        outcome = asyncio.run(handlers().payment_webhook.handle(raw_body, signature))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if outcome.order is None:
        click.echo(f"Webhook {outcome.action}.")
    else:
        click.echo(
            f"Webhook {outcome.action}: order {outcome.order.order_number} "
            f"is {outcome.order.order_status.value} (payment={outcome.order.payment_status.value})."
        )


@click.command("confirm")
@click.option("--transaction-ref", required=True, help="Gateway transaction reference.")
@click.option(
    "--paid-at",
    default=None,
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]),
    help="When the gateway received the money (UTC).",
)
def payment_confirm(transaction_ref: str, paid_at: datetime | None) -> None:
    """Record a payment confirmed out of band."""
    when = paid_at.replace(tzinfo=timezone.utc) if paid_at else None
    try:
        order = asyncio.run(handlers().confirm_paid_order.handle(transaction_ref, when))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    display_order(order_to_dto(order))
