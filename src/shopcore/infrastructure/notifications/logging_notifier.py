"""Notifier that records shopper messages in the log instead of sending them."""

from __future__ import annotations

import structlog

from shopcore.domain.gateway.notifier import Notifier
from shopcore.domain.model.order import Order

logger = structlog.get_logger(__name__)


class LoggingNotifier(Notifier):

    async def payment_confirmed(self, order: Order) -> None:
        recipient = order.guest_email or order.shipping_address.email
        logger.info(
            "Payment confirmation message",
            to=recipient,
            subject=f"Payment Confirmed - Order {order.order_number}",
            order_number=order.order_number,
            total=str(order.total),
        )
