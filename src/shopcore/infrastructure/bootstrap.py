"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from shopcore.application.checkout import CheckoutHandler
from shopcore.application.confirm_paid_order import ConfirmPaidOrderHandler
from shopcore.application.handle_payment_webhook import HandlePaymentWebhookHandler
from shopcore.application.import_products import (
    ImportProductsHandler,
    ListProductsHandler,
)
from shopcore.application.price_cart import PriceCartHandler
from shopcore.application.record_payment_failure import RecordPaymentFailureHandler
from shopcore.application.release_expired_reservations import (
    ReleaseExpiredReservationsHandler,
)
from shopcore.application.shipping_settings import (
    ShowShippingSettingsHandler,
    UpdateShippingSettingsHandler,
)
from shopcore.application.show_inventory import ShowInventoryHandler
from shopcore.application.show_order import ShowOrderHandler
from shopcore.application.update_order_status import UpdateOrderStatusHandler
from shopcore.application.verify_payment import VerifyPaymentHandler
from shopcore.domain.repository.unit_of_work import UnitOfWork
from shopcore.domain.service.id_resolution_cache import IdResolutionCache
from shopcore.infrastructure.config import Settings
from shopcore.infrastructure.notifications.logging_notifier import LoggingNotifier
from shopcore.infrastructure.payment.monnify_gateway import MonnifyGateway
from shopcore.infrastructure.payment.webhook_signature import (
    HmacSha512SignatureVerifier,
)
from shopcore.infrastructure.persistence.json_customer_directory import (
    JsonCustomerDirectory,
)
from shopcore.infrastructure.persistence.json_document_store import JsonDocumentStore
from shopcore.infrastructure.persistence.json_unit_of_work import JsonUnitOfWork


@dataclass
class Handlers:
    import_products: ImportProductsHandler
    list_products: ListProductsHandler
    show_inventory: ShowInventoryHandler
    show_shipping: ShowShippingSettingsHandler
    update_shipping: UpdateShippingSettingsHandler
    price_cart: PriceCartHandler
    checkout: CheckoutHandler
    show_order: ShowOrderHandler
    update_order_status: UpdateOrderStatusHandler
    confirm_paid_order: ConfirmPaidOrderHandler
    record_payment_failure: RecordPaymentFailureHandler
    verify_payment: VerifyPaymentHandler
    payment_webhook: HandlePaymentWebhookHandler
    release_expired: ReleaseExpiredReservationsHandler


def build_handlers(settings: Settings) -> Handlers:
    store = JsonDocumentStore(
        settings.data_dir / "store.json",
        lock_timeout=float(settings.store_lock_timeout_seconds),
    )

    def uow_factory() -> UnitOfWork:
        return JsonUnitOfWork(store)

    id_cache = IdResolutionCache(
        uow_factory, ttl=timedelta(seconds=settings.id_cache_ttl_seconds)
    )
    gateway = MonnifyGateway(
        base_url=settings.monnify_base_url,
        api_key=settings.monnify_api_key,
        secret_key=settings.monnify_secret_key,
        contract_code=settings.monnify_contract_code,
        redirect_url=f"{settings.app_url}/payment/verify",
    )
    confirm = ConfirmPaidOrderHandler(uow_factory, LoggingNotifier())
    record_failure = RecordPaymentFailureHandler(uow_factory)

    return Handlers(
        import_products=ImportProductsHandler(uow_factory, id_cache),
        list_products=ListProductsHandler(uow_factory),
        show_inventory=ShowInventoryHandler(uow_factory),
        show_shipping=ShowShippingSettingsHandler(uow_factory),
        update_shipping=UpdateShippingSettingsHandler(uow_factory),
        price_cart=PriceCartHandler(uow_factory, id_cache),
        checkout=CheckoutHandler(
            uow_factory,
            JsonCustomerDirectory(settings.data_dir / "customers.json"),
            gateway,
            reservation_ttl=timedelta(minutes=settings.reservation_ttl_minutes),
        ),
        show_order=ShowOrderHandler(uow_factory),
        update_order_status=UpdateOrderStatusHandler(uow_factory),
        confirm_paid_order=confirm,
        record_payment_failure=record_failure,
        verify_payment=VerifyPaymentHandler(uow_factory, gateway, confirm, record_failure),
        payment_webhook=HandlePaymentWebhookHandler(
            HmacSha512SignatureVerifier(settings.monnify_secret_key),
            confirm,
            record_failure,
        ),
        release_expired=ReleaseExpiredReservationsHandler(uow_factory),
    )


@lru_cache(maxsize=None)
def handlers() -> Handlers:
    """Handlers wired from the environment, built once per process."""
    return build_handlers(Settings.from_env())
