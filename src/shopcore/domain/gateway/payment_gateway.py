"""Abstract payment gateway: hosted checkout creation and verification."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from shopcore.domain.model.value_objects import Money

PAID = "PAID"
PENDING = "PENDING"
FAILURE_STATUSES = frozenset({"FAILED", "CANCELLED", "USER_CANCELLED"})


@dataclass(frozen=True)
class CheckoutCustomer:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class HostedCheckout:
    """Where to send the shopper, and how the gateway will refer to the payment."""

    checkout_url: str
    transaction_reference: str
    payment_reference: str | None = None


@dataclass(frozen=True)
class TransactionStatus:
    status: str
    paid_on: datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == PAID

    @property
    def is_failure(self) -> bool:
        return self.status in FAILURE_STATUSES


class PaymentGateway(ABC):

    @abstractmethod
    async def create_hosted_checkout(
        self,
        amount: Money,
        customer: CheckoutCustomer,
        reference: str,
        description: str,
        metadata: dict[str, str] | None = None,
    ) -> HostedCheckout:
        """Open a hosted checkout session. Raises PaymentGatewayError on failure."""

    @abstractmethod
    async def verify_transaction(self, transaction_reference: str) -> TransactionStatus:
        """Ask the gateway for the current status of a transaction."""


class WebhookSignatureVerifier(ABC):

    @abstractmethod
    def verify(self, raw_body: bytes, signature: str) -> bool:
        """True if ``signature`` authenticates ``raw_body``."""


# Gateway timestamps without an offset are West Africa Time.
_GATEWAY_TZ = timezone(timedelta(hours=1))
_TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S", "%d/%m/%Y %I:%M:%S %p")


def parse_paid_on(value: object) -> datetime | None:
    """Parse a gateway ``paidOn`` value; None when absent or unreadable."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        else:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_GATEWAY_TZ)
    return parsed.astimezone(timezone.utc)
