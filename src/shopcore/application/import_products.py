"""Application service: Import Products use case.

Loads catalog documents (as produced by the storefront admin) into the
store.  Unlike loading from storage, input is validated strictly: a
document that would later be dropped by pricing is rejected here.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from shopcore.domain.exceptions import ValidationError
from shopcore.domain.model.product import Measurements, Product, Size, Variant
from shopcore.domain.model.value_objects import is_canonical_id, new_id
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.id_resolution_cache import IdResolutionCache

logger = structlog.get_logger(__name__)

_REQUIRED_PRODUCT_FIELDS = ("name", "slug", "category")


class ImportProductsHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, id_cache: IdResolutionCache) -> None:
        self._uow_factory = uow_factory
        self._id_cache = id_cache

    async def handle(self, documents: list[dict[str, Any]]) -> list[Product]:
        """Validate every document, then save them all in one unit of work.

        Re-importing an existing product keeps the units currently held by
        open reservations.
        """
        products = [_parse_product(doc, index) for index, doc in enumerate(documents)]

        async with self._uow_factory() as uow:
            for product in products:
                existing = await uow.products.get_by_id(product.id)
                if existing is not None:
                    _carry_reservations(existing, product)
                await uow.products.save(product)
            await uow.commit()

        self._id_cache.clear()
        logger.info("Products imported", count=len(products))
        return products


class ListProductsHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self) -> list[Product]:
        async with self._uow_factory() as uow:
            return await uow.products.list_all()


# --- Parsing ------------------------------------------------------------------


def _parse_product(doc: dict[str, Any], index: int) -> Product:
    where = f"Product #{index + 1}"
    if not isinstance(doc, dict):
        raise ValidationError(f"{where} must be an object")
    for name in _REQUIRED_PRODUCT_FIELDS:
        if not str(doc.get(name) or "").strip():
            raise ValidationError(f"{where}: '{name}' is required")
    if "description" not in doc or doc["description"] is None:
        raise ValidationError(f"{where}: 'description' is required")

    variants_raw = doc.get("variants")
    if not isinstance(variants_raw, list) or not variants_raw:
        raise ValidationError(f"{where}: at least one variant is required")

    where = f"Product '{doc['name']}'"
    variants = [_parse_variant(raw, f"{where} variant #{i + 1}") for i, raw in enumerate(variants_raw)]
    ids = [variant.id for variant in variants]
    if len(set(ids)) != len(ids):
        raise ValidationError(f"{where}: duplicate variant ids")

    return Product(
        id=_parse_id(doc.get("id"), where),
        name=str(doc["name"]).strip(),
        slug=str(doc["slug"]).strip(),
        description=str(doc["description"]),
        category=str(doc["category"]).strip(),
        material=str(doc.get("material") or ""),
        owner=str(doc.get("owner") or "self"),
        is_featured=bool(doc.get("is_featured", False)),
        variants=variants,
    )


def _parse_variant(raw: Any, where: str) -> Variant:
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} must be an object")

    image_urls = raw.get("image_urls")
    if not isinstance(image_urls, list) or not [u for u in image_urls if str(u).strip()]:
        raise ValidationError(f"{where}: at least one image is required")
    color = str(raw.get("color") or "").strip()
    if not color:
        raise ValidationError(f"{where}: color is required")
    size = Size.parse(raw.get("size"))
    if size is None:
        raise ValidationError(
            f"{where}: size must be one of {', '.join(s.value for s in Size)}"
        )

    price = _parse_decimal(raw.get("price"), f"{where}: price")
    if price <= 0:
        raise ValidationError(f"{where}: price must be greater than 0")
    discount = _parse_decimal(raw.get("discount_price", 0), f"{where}: discount_price")
    if discount < 0:
        raise ValidationError(f"{where}: discount_price cannot be negative")

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError(f"{where}: quantity must be a non-negative integer")

    measurements = None
    if raw.get("measurements"):
        if not isinstance(raw["measurements"], dict):
            raise ValidationError(f"{where}: measurements must be an object")
        try:
            measurements = Measurements.create(**raw["measurements"])
        except ValidationError as exc:
            raise ValidationError(f"{where}: {exc}") from exc

    return Variant(
        id=_parse_id(raw.get("id"), where),
        image_urls=[str(u).strip() for u in image_urls if str(u).strip()],
        color=color,
        size=size,
        price=price,
        discount_price=discount,
        quantity=quantity,
        reserved_quantity=0,
        measurements=measurements,
    )


def _parse_id(value: Any, where: str) -> str:
    if value is None or value == "":
        return new_id()
    if not is_canonical_id(value):
        raise ValidationError(f"{where}: id must be 24 hexadecimal characters")
    return str(value).lower()


def _parse_decimal(value: Any, where: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{where} must be a number")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{where} must be a number") from exc
    if not parsed.is_finite():
        raise ValidationError(f"{where} must be a number")
    return parsed


def _carry_reservations(existing: Product, incoming: Product) -> None:
    for variant in incoming.variants:
        previous = existing.find_variant(variant.id)
        if previous is None or previous.reserved_quantity == 0:
            continue
        if (variant.quantity or 0) < previous.reserved_quantity:
            raise ValidationError(
                f"Product '{incoming.name}': quantity {variant.quantity} is below the "
                f"{previous.reserved_quantity} units held by open orders"
            )
        variant.reserved_quantity = previous.reserved_quantity
