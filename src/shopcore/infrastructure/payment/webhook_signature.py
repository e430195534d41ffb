"""HMAC-SHA512 webhook signature check used by Monnify."""

from __future__ import annotations

import hashlib
import hmac

from shopcore.domain.gateway.payment_gateway import WebhookSignatureVerifier


class HmacSha512SignatureVerifier(WebhookSignatureVerifier):

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode()

    def sign(self, raw_body: bytes) -> str:
        return hmac.new(self._secret_key, raw_body, hashlib.sha512).hexdigest()

    def verify(self, raw_body: bytes, signature: str) -> bool:
        if not self._secret_key or not signature:
            return False
        return hmac.compare_digest(self.sign(raw_body), signature.strip().lower())
