"""CLI commands for the Product aggregate."""

from __future__ import annotations

import asyncio
import json

import click

from shopcore.domain.exceptions import DomainException
from shopcore.infrastructure.bootstrap import handlers


@click.command("import")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file holding a list of product documents.",
)
def product_import(file_path: str) -> None:
    """Import (or re-import) products from a JSON file."""
    with open(file_path, encoding="utf-8") as fh:
        try:
            documents = json.load(fh)
        except ValueError as exc:
            raise click.ClickException(f"Invalid JSON in {file_path}: {exc}")
    if not isinstance(documents, list):
        raise click.ClickException("Product file must contain a JSON list")

    try:
        products = asyncio.run(handlers().import_products.handle(documents))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Imported {len(products)} product(s).")


@click.command("list")
def product_list() -> None:
    """List all products in the catalog."""
    try:
        products = asyncio.run(handlers().list_products.handle())
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<26} {'Name':<28} {'Category':<14} {'Variants':>8}")
    click.echo("-" * 79)
    for p in products:
        click.echo(f"{p.id:<26} {p.name:<28} {p.category:<14} {len(p.variants):>8}")
