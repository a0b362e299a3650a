"""Paystack transaction API client.

Only the two calls the checkout flow needs: initialize and verify. Amounts
cross this boundary in the gateway's minor unit (kobo); use
``to_minor_units`` / ``to_major_units`` at the edges.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .config import PAYSTACK_BASE_URL
from .errors import GatewayError

logger = logging.getLogger(__name__)

MINOR_UNITS = Decimal(100)


def to_minor_units(amount) -> int:
    # round half up on a Decimal, never on a float product
    minor = Decimal(str(amount)) * MINOR_UNITS
    return int(minor.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major_units(amount) -> Decimal:
    return Decimal(str(amount)) / MINOR_UNITS


class PaystackClient:
    def __init__(
        self,
        secret_key: str,
        base_url: str = PAYSTACK_BASE_URL,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.secret_key}"},
        )

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            with self._client() as client:
                response = client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("paystack %s %s timed out: %s", method, path, exc)
            raise GatewayError("Payment gateway timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("paystack %s %s failed: %s", method, path, exc)
            raise GatewayError(f"Payment gateway unreachable: {exc}") from exc

        # rejections come back as non-2xx with {"status": false, "message": ...}
        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Payment gateway returned an invalid response (HTTP {response.status_code})"
            ) from exc
        if not isinstance(data, dict):
            raise GatewayError("Payment gateway returned an invalid response")
        return data

    def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata or {},
        }
        return self._send("POST", "/transaction/initialize", json=payload)

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        return self._send("GET", f"/transaction/verify/{quote(reference, safe='')}")
