"""Client side of the checkout: start a payment, then confirm it server-side.

Two ways to collect a payment exist and both end in ``confirm``:

* redirect: ``start`` returns the gateway's authorization URL; the gateway
  sends the browser back to ``callback_url(...)``, which carries the payment
  id in ``?verify=``.
* embedded widget: the gateway's inline checkout hands back a transaction
  reference in its completion callback, which is passed to ``confirm``.

A payment is only ever reported as paid when the verify endpoint says so.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

INITIALIZE_PATH = "/api/v1/paystack/initialize"
VERIFY_PATH = "/api/v1/paystack/verify"


class CheckoutError(Exception):
    """Checkout could not be started or the payment was not confirmed."""


def callback_url(origin: str, payment_id: str) -> str:
    return f"{origin.rstrip('/')}/payments?{urlencode({'verify': payment_id})}"


class PaystackCheckout:
    def __init__(self, http: httpx.Client):
        self.http = http

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.http.post(path, json=body)
            data = response.json()
        except httpx.HTTPError as exc:
            logger.error("checkout request to %s failed: %s", path, exc)
            raise CheckoutError(str(exc) or "Network error") from exc
        except ValueError as exc:
            raise CheckoutError("Invalid response from payment service") from exc
        if not isinstance(data, dict):
            raise CheckoutError("Invalid response from payment service")
        if response.status_code >= 400 or "error" in data:
            raise CheckoutError(data.get("error") or f"HTTP {response.status_code}")
        return data

    def start(
        self,
        payment_id: str,
        email: str,
        amount: Union[Decimal, float, int],
        origin: str,
    ) -> str:
        """Initialize the transaction and return the URL to send the payer to."""
        data = self._post(
            INITIALIZE_PATH,
            {
                "paymentId": payment_id,
                "email": email,
                "amount": float(amount),
                "callbackUrl": callback_url(origin, payment_id),
            },
        )
        url: Optional[str] = data.get("authorization_url")
        if not url:
            raise CheckoutError("Payment service returned no authorization URL")
        return url

    def confirm(self, reference: str) -> Dict[str, Any]:
        """Verify a transaction; returns its data or raises ``CheckoutError``."""
        data = self._post(VERIFY_PATH, {"reference": reference})
        if data.get("success") is not True:
            raise CheckoutError(data.get("message") or "Payment verification failed")
        return data.get("data") or {}
