import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from .. import checkout
from ..deps import get_gateway, get_store
from ..errors import InvalidRequest, PaymentError, UnknownError
from ..paystack import PaystackClient
from ..schemas import InitializeRequest, InitializeResponse, VerifyRequest
from ..store import PaymentStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["paystack"])


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise InvalidRequest("Request body must be valid JSON")


async def _run(func, *args):
    try:
        return await run_in_threadpool(func, *args)
    except PaymentError:
        raise
    except Exception as exc:
        logger.exception("unexpected error in %s", func.__name__)
        raise UnknownError(str(exc) or "Unknown error") from exc


@router.post("/api/v1/paystack/initialize", response_model=InitializeResponse)
@router.post("/functions/paystack-initialize", response_model=InitializeResponse, include_in_schema=False)
async def paystack_initialize(request: Request, gateway: PaystackClient = Depends(get_gateway)):
    req = checkout.parse_request(InitializeRequest, await _json_body(request))
    return await _run(checkout.initialize_payment, req, gateway)


async def _verify(reference: Any, gateway: PaystackClient, store: PaymentStore):
    req = checkout.parse_request(VerifyRequest, {"reference": reference})
    result = await _run(checkout.verify_payment, req, gateway, store)
    return result.body()


@router.post("/api/v1/paystack/verify")
@router.post("/functions/paystack-verify", include_in_schema=False)
async def paystack_verify(
    request: Request,
    gateway: PaystackClient = Depends(get_gateway),
    store: PaymentStore = Depends(get_store),
):
    body = await _json_body(request)
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return await _verify(body.get("reference"), gateway, store)


@router.get("/payments")
async def paystack_callback(
    verify: Optional[str] = None,
    reference: Optional[str] = None,
    gateway: PaystackClient = Depends(get_gateway),
    store: PaymentStore = Depends(get_store),
):
    """Checkout redirect landing: ``/payments?verify=<payment id>``.

    Paystack appends its own ``reference`` (and ``trxref``) parameters; the
    payment id we put in the callback URL wins when both are present.
    """
    return await _verify(verify or reference, gateway, store)
