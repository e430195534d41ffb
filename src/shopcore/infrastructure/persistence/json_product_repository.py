"""JSON-document-backed implementation of ProductRepository.

Loading is lenient: fields that are missing or malformed in storage
come back as None so pricing can drop the affected variant instead of
failing the whole request.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from shopcore.domain.model.product import Measurements, Product, Size, Variant
from shopcore.domain.repository.product_repository import ProductRepository

logger = structlog.get_logger(__name__)


class JsonProductRepository(ProductRepository):

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document

    # --- ProductRepository interface ------------------------------------------

    async def get_by_id(self, product_id: str) -> Product | None:
        for raw in self._raw_products():
            if raw.get("id") == product_id:
                return self._to_domain(raw)
        return None

    async def find_by_ids(self, product_ids: list[str]) -> list[Product]:
        wanted = set(product_ids)
        return [
            self._to_domain(raw)
            for raw in self._raw_products()
            if raw.get("id") in wanted
        ]

    async def list_all(self) -> list[Product]:
        return [self._to_domain(raw) for raw in self._raw_products()]

    async def save(self, product: Product) -> None:
        products = self._raw_products()

        # Upsert: replace if exists, otherwise append
        for i, raw in enumerate(products):
            if raw.get("id") == product.id:
                products[i] = self._to_raw(product)
                return
        products.append(self._to_raw(product))

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(product: Product) -> dict[str, Any]:
        return {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "description": product.description,
            "category": product.category,
            "material": product.material,
            "owner": product.owner,
            "is_featured": product.is_featured,
            "variants": [
                {
                    "id": v.id,
                    "image_urls": list(v.image_urls),
                    "color": v.color,
                    "size": v.size.value if v.size else None,
                    "price": str(v.price) if v.price is not None else None,
                    "discount_price": (
                        str(v.discount_price) if v.discount_price is not None else None
                    ),
                    "quantity": v.quantity,
                    "reserved_quantity": v.reserved_quantity,
                    # written for readers only; always re-derived on load
                    "in_stock": v.in_stock,
                    "measurements": v.measurements.populated() if v.measurements else None,
                }
                for v in product.variants
            ],
        }

    @staticmethod
    def _to_domain(raw: dict[str, Any]) -> Product:
        return Product(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            slug=str(raw.get("slug") or ""),
            description=raw.get("description") if isinstance(raw.get("description"), str) else None,
            category=str(raw.get("category") or ""),
            material=str(raw.get("material") or ""),
            owner=str(raw.get("owner") or "self"),
            is_featured=bool(raw.get("is_featured", False)),
            variants=[
                _variant_to_domain(v)
                for v in raw.get("variants") or []
                if isinstance(v, dict)
            ],
        )

    def _raw_products(self) -> list[dict[str, Any]]:
        return self._document.setdefault("products", [])


def _variant_to_domain(raw: dict[str, Any]) -> Variant:
    image_urls = raw.get("image_urls")
    return Variant(
        id=str(raw.get("id") or ""),
        image_urls=[str(u) for u in image_urls] if isinstance(image_urls, list) else [],
        color=str(raw.get("color") or ""),
        size=Size.parse(raw.get("size")) if raw.get("size") else None,
        price=_lenient_decimal(raw.get("price")),
        discount_price=_lenient_decimal(raw.get("discount_price")),
        quantity=_lenient_int(raw.get("quantity")),
        reserved_quantity=_lenient_int(raw.get("reserved_quantity")) or 0,
        measurements=_lenient_measurements(raw.get("measurements")),
    )


def _lenient_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _lenient_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _lenient_measurements(value: Any) -> Measurements | None:
    if not isinstance(value, dict):
        return None
    known = {
        name: float(v)
        for name, v in value.items()
        if name in Measurements.__dataclass_fields__
        and isinstance(v, (int, float))
        and not isinstance(v, bool)
    }
    return Measurements(**known) if known else None
