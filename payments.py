"""Payment gateway client and signature checks.

Razorpay expects amounts in the currency's minor unit and signs a completed
checkout with ``HMAC-SHA256(key_secret, order_id + "|" + payment_id)``.
"""

import hashlib
import hmac
import logging
import secrets
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from errors import UpstreamError

logger = logging.getLogger("checkout.payments")

RECEIPT_PREFIX = "receipt_"
MAX_RECEIPT_LENGTH = 40

GATEWAY_ERRORS = (BadRequestError, GatewayError, ServerError, requests.exceptions.RequestException)


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount (e.g. rupees) to minor units (paise)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def make_receipt(prefix: str = RECEIPT_PREFIX) -> str:
    receipt = f"{prefix}{int(time.time() * 1000)}_{secrets.token_hex(2)}"
    return receipt[:MAX_RECEIPT_LENGTH]


def generate_signature(secret: str, order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    expected = generate_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK.

    Only ``key_id`` is public; the secret stays inside the SDK client.
    """

    def __init__(self, key_id: str, key_secret: str, client: Optional[razorpay.Client] = None):
        self.key_id = key_id
        self._client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        data = {"amount": amount, "currency": currency, "receipt": receipt}
        if notes:
            data["notes"] = notes
        try:
            return self._client.order.create(data=data)
        except GATEWAY_ERRORS as e:
            logger.error("gateway order creation failed", extra={"receipt": receipt, "error": str(e)})
            raise UpstreamError("Error creating order") from e

    def ping(self) -> bool:
        try:
            self._client.order.all({"count": 1})
        except GATEWAY_ERRORS as e:
            logger.error("razorpay connection error", extra={"error": str(e)})
            return False
        logger.info("razorpay connected")
        return True
