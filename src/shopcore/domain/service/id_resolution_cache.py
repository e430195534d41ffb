"""Domain service: resolve legacy id fingerprints to canonical ids.

Older clients identify products and variants by a lossy 32-bit digest
of the id instead of the id itself. This cache maps those fingerprints
back to canonical ids. It is built from the whole catalog on first use
and rebuilt once its TTL has passed.

Concurrent callers share a single build: whoever finds the cache stale
takes the build slot and the rest await the same future.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=5)
MAX_LOGGED_COLLISIONS = 10


def fingerprint(identifier: str) -> int:
    """32-bit polynomial rolling hash (``h = h * 31 + char``), absolute value.

    Wraps to a signed 32-bit integer after every step, matching the
    digest that legacy clients compute.
    """
    h = 0
    for ch in identifier:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 1 << 32
    return abs(h)


@dataclass(frozen=True)
class ResolvedIds:
    product_id: str
    variant_id: str


# product fingerprint -> [(product id, variant fingerprint -> [variant ids])]
_Index = dict[int, list[tuple[str, dict[int, list[str]]]]]


@dataclass
class _CacheState:
    data: _Index | None = None
    expires_at: datetime | None = None
    build_in_flight: asyncio.Future[_Index] | None = None

    def is_valid(self, now: datetime) -> bool:
        return (
            self.data is not None
            and self.expires_at is not None
            and now < self.expires_at
        )


@dataclass
class _Collisions:
    count: int = 0
    samples: list[dict[str, object]] = field(default_factory=list)

    def add(self, **sample: object) -> None:
        self.count += 1
        if len(self.samples) < MAX_LOGGED_COLLISIONS:
            self.samples.append(sample)


class IdResolutionCache:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ttl: timedelta = DEFAULT_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._ttl = ttl
        self._clock = clock
        self._state = _CacheState()

    async def resolve(
        self, product_fingerprint: int, variant_fingerprint: int
    ) -> ResolvedIds | None:
        """Return the canonical ids for a fingerprint pair, or None.

        Every candidate is re-hashed before it is accepted, so a product
        whose fingerprint collides with another never resolves to the
        other's variants.
        """
        index = await self._current_index()
        for product_id, variants in index.get(product_fingerprint, []):
            if fingerprint(product_id) != product_fingerprint:
                logger.warning(
                    "Product fingerprint mismatch in cache",
                    product_id=product_id,
                    expected=product_fingerprint,
                )
                continue
            for variant_id in variants.get(variant_fingerprint, []):
                if fingerprint(variant_id) != variant_fingerprint:
                    logger.warning(
                        "Variant fingerprint mismatch in cache",
                        variant_id=variant_id,
                        expected=variant_fingerprint,
                    )
                    continue
                return ResolvedIds(product_id=product_id, variant_id=variant_id)
        return None

    def clear(self) -> None:
        """Invalidate the cache; the next lookup rebuilds it."""
        self._state.data = None
        self._state.expires_at = None

    # --- Internal helpers -----------------------------------------------------

    async def _current_index(self) -> _Index:
        state = self._state
        while True:
            if state.is_valid(self._clock()):
                assert state.data is not None
                return state.data
            pending = state.build_in_flight
            if pending is not None:
                # Someone else is building; wait, then re-check.
                try:
                    await asyncio.shield(pending)
                except asyncio.CancelledError:
                    # The builder was cancelled, not this caller: take the slot.
                    current = asyncio.current_task()
                    if pending.cancelled() and current is not None and current.cancelling() == 0:
                        continue
                    raise
                continue
            break

        future: asyncio.Future[_Index] = asyncio.get_running_loop().create_future()
        state.build_in_flight = future
        try:
            index = await self._build()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            future.exception()  # mark retrieved when nobody is waiting
            raise
        else:
            state.data = index
            state.expires_at = self._clock() + self._ttl
            future.set_result(index)
            return index
        finally:
            state.build_in_flight = None

    async def _build(self) -> _Index:
        async with self._uow_factory() as uow:
            products = await uow.products.list_all()

        index: _Index = {}
        variant_count = 0
        for product in products:
            variants: dict[int, list[str]] = {}
            for variant in product.variants:
                variants.setdefault(fingerprint(variant.id), []).append(variant.id)
                variant_count += 1
            index.setdefault(fingerprint(product.id), []).append((product.id, variants))

        collisions = _Collisions()
        for product_fp, entries in index.items():
            if len(entries) > 1:
                collisions.add(
                    fingerprint=product_fp,
                    product_ids=[product_id for product_id, _ in entries],
                )
            for product_id, variants in entries:
                for variant_fp, variant_ids in variants.items():
                    if len(variant_ids) > 1:
                        collisions.add(
                            fingerprint=variant_fp,
                            product_id=product_id,
                            variant_ids=list(variant_ids),
                        )
        if collisions.count:
            logger.warning(
                "Hash collisions detected in id cache",
                collision_count=collisions.count,
                collisions=collisions.samples,
            )

        logger.info(
            "Product id cache built",
            product_count=len(products),
            variant_count=variant_count,
        )
        return index
