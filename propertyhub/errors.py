"""Error taxonomy for the payment handlers.

Every handler failure is one of these and is rendered as ``{"error": message}``
with the class's status code. ``PersistenceWarning`` is the exception: it is
raised by the payment stores, logged by the verify flow and never returned.
"""

from fastapi import Request
from fastapi.responses import JSONResponse


class PaymentError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(PaymentError):
    status_code = 400


class ConfigurationError(PaymentError):
    status_code = 500


class GatewayError(PaymentError):
    status_code = 400


class UnknownError(PaymentError):
    status_code = 500


class PersistenceWarning(Exception):
    """The store update failed after the gateway confirmed the payment."""

    def __init__(self, payment_id: str, detail: str):
        super().__init__(f"payment {payment_id}: {detail}")
        self.payment_id = payment_id
        self.detail = detail


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
