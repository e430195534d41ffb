import click

from shopcore.infrastructure.cli.cart_commands import cart_price
from shopcore.infrastructure.cli.inventory_commands import inventory_show
from shopcore.infrastructure.cli.order_commands import (
    order_checkout,
    order_retry_deduction,
    order_show,
    order_status,
)
from shopcore.infrastructure.cli.payment_commands import (
    payment_confirm,
    payment_verify,
    payment_webhook,
)
from shopcore.infrastructure.cli.product_commands import product_import, product_list
from shopcore.infrastructure.cli.reservation_commands import reservations_release_expired
from shopcore.infrastructure.cli.shipping_commands import shipping_set, shipping_show
from shopcore.infrastructure.config import Settings
from shopcore.infrastructure.logging import configure_logging


@click.group()
def cli() -> None:
    """shopcore: catalog stock, checkout and payment fulfillment"""
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)


@cli.group()
def product() -> None:
    """Manage the catalog."""


@cli.group()
def inventory() -> None:
    """Inspect variant stock."""


@cli.group()
def shipping() -> None:
    """Manage shipping fees."""


@cli.group()
def cart() -> None:
    """Price carts."""


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def payment() -> None:
    """Process gateway payments."""


@cli.group()
def reservations() -> None:
    """Maintain stock reservations."""


# Register subcommands
product.add_command(product_import)
product.add_command(product_list)
inventory.add_command(inventory_show)
shipping.add_command(shipping_show)
shipping.add_command(shipping_set)
cart.add_command(cart_price)
order.add_command(order_checkout)
order.add_command(order_show)
order.add_command(order_status)
order.add_command(order_retry_deduction)
payment.add_command(payment_verify)
payment.add_command(payment_webhook)
payment.add_command(payment_confirm)
reservations.add_command(reservations_release_expired)
