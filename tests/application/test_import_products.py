"""Integration tests for the catalog import use case."""

import asyncio

import pytest

from shopcore.application.import_products import ImportProductsHandler, ListProductsHandler
from shopcore.domain.exceptions import ValidationError
from shopcore.domain.model.product import Size
from shopcore.domain.model.value_objects import is_canonical_id
from shopcore.domain.service.id_resolution_cache import IdResolutionCache, fingerprint
from tests.fakes import (
    PRODUCT_ID,
    VARIANT_ID,
    FakeClock,
    InMemoryStore,
    make_product,
    make_variant,
)


def _document(**overrides):
    doc = {
        "id": PRODUCT_ID,
        "name": "Agbada",
        "slug": "agbada",
        "description": "Hand-woven aso-oke",
        "category": "Men",
        "variants": [
            {
                "id": VARIANT_ID,
                "image_urls": ["https://cdn.example.com/agbada.jpg"],
                "color": "Blue",
                "size": "m",
                "price": 1000,
                "discount_price": "800.00",
                "quantity": 12,
            }
        ],
    }
    doc.update(overrides)
    return doc


def _variant(**overrides):
    variant = dict(_document()["variants"][0])
    variant.update(overrides)
    return variant


def _setup(products=None):
    store = InMemoryStore(products or [])
    cache = IdResolutionCache(store.uow_factory, clock=FakeClock())
    return ImportProductsHandler(store.uow_factory, cache), store, cache


class TestImportProducts:

    def test_imports_document(self):
        handler, store, _ = _setup()

        asyncio.run(handler.handle([_document()]))

        variant = store.variant()
        assert store.products[PRODUCT_ID].name == "Agbada"
        assert variant.size == Size.M
        assert str(variant.effective_price) == "800.00"
        assert (variant.quantity, variant.reserved_quantity) == (12, 0)

    def test_generates_missing_ids(self):
        handler, _, _ = _setup()
        doc = _document(id=None, variants=[_variant(id=None)])

        [product] = asyncio.run(handler.handle([doc]))

        assert is_canonical_id(product.id)
        assert is_canonical_id(product.variants[0].id)

    def test_listed_after_import(self):
        handler, store, _ = _setup()
        asyncio.run(handler.handle([_document()]))
        products = asyncio.run(ListProductsHandler(store.uow_factory).handle())
        assert [p.id for p in products] == [PRODUCT_ID]

    def test_reimport_keeps_reserved_units(self):
        handler, store, _ = _setup([make_product(variants=[make_variant(quantity=10, reserved=4)])])

        asyncio.run(handler.handle([_document()]))

        assert (store.variant().quantity, store.variant().reserved_quantity) == (12, 4)

    def test_reimport_below_reserved_rejected(self):
        handler, store, _ = _setup([make_product(variants=[make_variant(quantity=10, reserved=4)])])

        with pytest.raises(ValidationError, match="held by open orders"):
            asyncio.run(handler.handle([_document(variants=[_variant(quantity=3)])]))

        assert store.variant().quantity == 10

    def test_import_refreshes_legacy_ids(self):
        handler, _, cache = _setup()
        pfp, vfp = fingerprint(PRODUCT_ID), fingerprint(VARIANT_ID)
        assert asyncio.run(cache.resolve(pfp, vfp)) is None

        asyncio.run(handler.handle([_document()]))

        assert asyncio.run(cache.resolve(pfp, vfp)) is not None


class TestImportValidation:

    @pytest.mark.parametrize(
        "variant, message",
        [
            ({"size": "XXXXL"}, "size must be one of"),
            ({"price": 0}, "price must be greater than 0"),
            ({"price": "abc"}, "price must be a number"),
            ({"discount_price": -5}, "discount_price cannot be negative"),
            ({"quantity": -1}, "quantity must be a non-negative integer"),
            ({"image_urls": []}, "at least one image"),
            ({"color": " "}, "color is required"),
            ({"id": "xyz"}, "24 hexadecimal"),
            ({"measurements": {"neck": 15}}, "At least 5 measurements"),
        ],
    )
    def test_invalid_variant_rejected(self, variant, message):
        handler, store, _ = _setup()
        with pytest.raises(ValidationError, match=message):
            asyncio.run(handler.handle([_document(variants=[_variant(**variant)])]))
        assert store.products == {}

    def test_missing_product_field_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(ValidationError, match="'slug' is required"):
            asyncio.run(handler.handle([_document(slug="")]))

    def test_product_without_variants_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(ValidationError, match="at least one variant"):
            asyncio.run(handler.handle([_document(variants=[])]))

    def test_one_bad_document_rejects_whole_batch(self):
        handler, store, _ = _setup()
        good = _document()
        bad = _document(id="64b0c0ffee00000000000002", name="")

        with pytest.raises(ValidationError, match="Product #2"):
            asyncio.run(handler.handle([good, bad]))
        assert store.products == {}
