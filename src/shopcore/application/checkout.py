"""Application service: Checkout use case.

Turns a cart into an order holding its stock, then opens a hosted
payment session for it.  This is the only place that coordinates the
customer directory, pricing, reservation and the payment gateway.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from shopcore.application.dto import CheckoutRequest, CheckoutResult
from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    ValidationError,
)
from shopcore.domain.gateway.customer_directory import CustomerDirectory
from shopcore.domain.gateway.payment_gateway import CheckoutCustomer, PaymentGateway
from shopcore.domain.model.cart import CartLine, PricedCart
from shopcore.domain.model.order import Order, generate_order_number
from shopcore.domain.model.shipping import ShippingSettings
from shopcore.domain.model.value_objects import Address
from shopcore.domain.repository.unit_of_work import UnitOfWork, UnitOfWorkFactory
from shopcore.domain.service.cart_pricing import CartPricingEngine
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)

DEFAULT_RESERVATION_TTL = timedelta(minutes=15)
MAX_ORDER_NUMBER_ATTEMPTS = 10


class CheckoutHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        customers: CustomerDirectory,
        gateway: PaymentGateway,
        reservation_ttl: timedelta = DEFAULT_RESERVATION_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._customers = customers
        self._gateway = gateway
        self._reservation_ttl = reservation_ttl
        self._clock = clock

    async def handle(self, user_id: str | None, request: CheckoutRequest) -> CheckoutResult:
        """Place an order and start payment.

        Steps:
        1. Resolve shipping and billing addresses.
        2. Price the cart and check every line is in stock.
        3. Create the order and reserve its stock in one unit of work.
        4. Open a hosted checkout and store the payment linkage.

        If step 4 fails the hold stays in place until the reaper frees it.
        """
        shipping_address, billing_address = await self._resolve_addresses(user_id, request)
        lines = [
            CartLine(product_id=pid, variant_id=vid, quantity=qty)
            for pid, vid, qty in request.items
        ]

        async with self._uow_factory() as uow:
            settings = await self._load_shipping_settings(uow, request.shipping_location)
            engine = CartPricingEngine(uow.products)
            cart = await engine.price(
                lines,
                shipping_location=request.shipping_location,
                free_shipping_threshold=settings.free_shipping_threshold if settings else None,
                location_fees=settings.location_fees if settings else None,
            )
            if cart is None or cart.is_empty:
                raise ValidationError("Invalid cart items or cart is empty")
            _check_stock(cart)

            now = self._clock()
            order = Order.create(
                order_number=await self._unique_order_number(uow, now),
                cart=cart,
                shipping_address=shipping_address,
                billing_address=billing_address,
                now=now,
                user_id=user_id,
                shipping_location=request.shipping_location,
            )
            svc = InventoryReservationService(uow.products)
            await svc.reserve_for_order(order, now, self._reservation_ttl)
            await uow.orders.save(order)
            await uow.commit()

        logger.info(
            "Order placed",
            order_number=order.order_number,
            total=str(order.total),
            is_guest=order.is_guest,
        )

        checkout = await self._gateway.create_hosted_checkout(
            amount=order.total,
            customer=CheckoutCustomer(
                name=shipping_address.full_name,
                email=shipping_address.email,
                phone=shipping_address.phone,
            ),
            reference=order.order_number,
            description=f"Order {order.order_number} - {len(order.items)} item(s)",
            metadata={
                "orderId": order.id,
                "orderNumber": order.order_number,
                "userId": user_id or "guest",
                "isGuest": str(order.is_guest).lower(),
            },
        )

        async with self._uow_factory() as uow:
            stored = await uow.orders.get_by_id(order.id)
            if stored is None:
                raise EntityNotFoundError(f"Order {order.order_number} not found")
            stored.attach_payment(
                transaction_reference=checkout.transaction_reference,
                gateway_payment_reference=checkout.payment_reference,
                payment_url=checkout.checkout_url,
                now=self._clock(),
            )
            await uow.orders.save(stored)
            await uow.commit()

        logger.info(
            "Checkout initialized",
            order_number=stored.order_number,
            transaction_reference=checkout.transaction_reference,
        )
        expires_at = stored.inventory.reservation_expires_at
        return CheckoutResult(
            order_id=stored.id,
            order_number=stored.order_number,
            total=str(stored.total),
            payment_url=checkout.checkout_url,
            transaction_reference=checkout.transaction_reference,
            reservation_expires_at=expires_at.isoformat() if expires_at else "",
        )

    # --- Internal helpers -----------------------------------------------------

    async def _resolve_addresses(
        self, user_id: str | None, request: CheckoutRequest
    ) -> tuple[Address, Address]:
        if user_id:
            if not await self._customers.exists(user_id):
                raise EntityNotFoundError("User account not found. Please sign in again.")
            address = await self._customers.get_address(user_id)
            if address is None or not address.is_complete():
                logger.warning(
                    "Incomplete user address on file",
                    user_id=user_id,
                    missing=address.missing_fields() if address else "all",
                )
                raise ValidationError(
                    "Complete shipping address is required. "
                    "Please update your address in your account settings."
                )
            return address, address

        shipping = request.shipping_address
        if shipping is None:
            raise ValidationError("Shipping address is required for guest checkout")
        if not shipping.is_complete():
            raise ValidationError(
                "Complete shipping address is required "
                f"(missing: {', '.join(shipping.missing_fields())})"
            )
        billing = shipping
        if not request.same_as_shipping and request.billing_address is not None:
            billing = request.billing_address
            if not billing.is_complete():
                raise ValidationError(
                    "Complete billing address is required "
                    f"(missing: {', '.join(billing.missing_fields())})"
                )
        return shipping, billing

    @staticmethod
    async def _load_shipping_settings(
        uow: UnitOfWork, shipping_location: str | None
    ) -> ShippingSettings | None:
        try:
            return await uow.shipping.get()
        except Exception:
            logger.warning(
                "Failed to fetch shipping settings for order calculation",
                shipping_location=shipping_location,
                exc_info=True,
            )
            return None

    @staticmethod
    async def _unique_order_number(uow: UnitOfWork, now: datetime) -> str:
        for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
            candidate = generate_order_number(now)
            if not await uow.orders.order_number_exists(candidate):
                return candidate
        raise ValidationError("Failed to generate unique order number")


def _check_stock(cart: PricedCart) -> None:
    for item in cart.items:
        if not item.in_stock:
            raise InsufficientStockError(
                item.product_name, [f'Product "{item.product_name}" is out of stock']
            )
        if item.quantity > item.available_quantity:
            raise InsufficientStockError(
                item.product_name,
                [f'Only {item.available_quantity} units available for "{item.product_name}"'],
            )
