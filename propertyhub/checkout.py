"""Paystack checkout handshake: initialize a transaction, then verify it.

Initialize never touches the payment store. Verify writes to it only when
the gateway reports the call succeeded *and* the transaction status is
``"success"``; anything else is a normal negative outcome.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import ValidationError

from .errors import GatewayError, InvalidRequest, PersistenceWarning
from .paystack import PaystackClient, to_major_units, to_minor_units
from .schemas import (
    InitializeRequest,
    InitializeResponse,
    VerifiedTransaction,
    VerifyRequest,
    VerifyResponse,
)
from .store import PaymentStore

logger = logging.getLogger(__name__)

SUCCESS = "success"


def _describe(exc: ValidationError) -> str:
    errors = exc.errors()
    missing = [
        str(e["loc"][-1])
        for e in errors
        if e["type"] == "missing" or e.get("input") in ("", None)
    ]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    first = errors[0]
    field = ".".join(str(p) for p in first["loc"]) or "body"
    return f"Invalid {field}: {first['msg']}"


def parse_request(schema, body: Any):
    """Validate a decoded JSON body against a request schema, before any other work."""
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return schema.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequest(_describe(exc)) from exc


def initialize_payment(req: InitializeRequest, gateway: PaystackClient) -> InitializeResponse:
    amount = to_minor_units(req.amount)
    result = gateway.initialize_transaction(
        email=req.email,
        amount=amount,
        reference=req.payment_id,
        callback_url=req.callback_url,
        metadata={"payment_id": req.payment_id},
    )
    if not result.get("status"):
        message = result.get("message") or "Failed to initialize payment"
        logger.info("paystack rejected initialize for %s: %s", req.payment_id, message)
        raise GatewayError(message)

    data = result.get("data") or {}
    try:
        response = InitializeResponse(
            authorization_url=data["authorization_url"],
            access_code=data["access_code"],
            reference=data["reference"],
        )
    except (KeyError, ValidationError) as exc:
        raise GatewayError("Payment gateway returned an incomplete checkout session") from exc
    logger.info("initialized paystack checkout for payment %s (%s kobo)", req.payment_id, amount)
    return response


def is_successful(result: Dict[str, Any]) -> bool:
    data = result.get("data")
    return result.get("status") is True and isinstance(data, dict) and data.get("status") == SUCCESS


def verify_payment(req: VerifyRequest, gateway: PaystackClient, store: PaymentStore) -> VerifyResponse:
    result = gateway.verify_transaction(req.reference)
    if not is_successful(result):
        data = result.get("data") if isinstance(result.get("data"), dict) else {}
        logger.info(
            "paystack verification for %s not successful: status=%s transaction=%s",
            req.reference,
            result.get("status"),
            data.get("status"),
        )
        return VerifyResponse(
            success=False,
            message=result.get("message") or "Payment verification failed",
        )

    data = result["data"]
    try:
        updated = store.mark_completed(
            payment_id=req.reference,
            reference=req.reference,
            paid_at=datetime.now(timezone.utc),
        )
    except PersistenceWarning as warning:
        # money was collected; the caller still gets success
        logger.error("verified payment not recorded: %s", warning)
    except Exception as exc:
        warning = PersistenceWarning(req.reference, f"store error: {exc!r}")
        logger.exception("verified payment not recorded: %s", warning)
    else:
        if updated:
            logger.info("payment %s marked completed", req.reference)
        else:
            logger.info("payment %s already completed, nothing to update", req.reference)

    return VerifyResponse(
        success=True,
        message="Payment verified successfully",
        data=VerifiedTransaction(
            amount=float(to_major_units(data.get("amount") or 0)),
            reference=data.get("reference") or req.reference,
            paid_at=data.get("paid_at"),
        ),
    )
