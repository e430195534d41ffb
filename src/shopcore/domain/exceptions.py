"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.
"""

from __future__ import annotations


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """Malformed input or a violated business rule. Nothing was mutated."""


class EntityNotFoundError(DomainException):
    """A requested product, variant or order does not exist."""


class InsufficientStockError(DomainException):
    """Requested quantity exceeds the units available for sale.

    ``product_name`` names the first offending product so the message can
    be shown to the shopper as-is.
    """

    def __init__(self, product_name: str, messages: list[str] | None = None) -> None:
        self.product_name = product_name
        self.messages = list(messages or [])
        super().__init__(
            "; ".join(self.messages) or f"Insufficient available stock for {product_name}"
        )


class ConcurrencyConflictError(DomainException):
    """The store could not serialize this transaction in time.

    Transient: the whole operation can be retried.
    """


class DeductionIntegrityError(DomainException):
    """A paid order cannot be fulfilled from current stock.

    Never resolved automatically; an operator has to refund or restock.
    """

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class PaymentGatewayError(DomainException):
    """The payment gateway rejected a request or could not be reached."""


class WebhookSignatureError(ValidationError):
    """A webhook delivery failed signature verification."""
