from fastapi import Depends, HTTPException, Request

from .config import Settings
from .db import engine
from .paystack import PaystackClient
from .store import PaymentStore, RestPaymentStore, SqlPaymentStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(settings: Settings = Depends(get_settings)) -> PaystackClient:
    secret = settings.require_gateway()
    return PaystackClient(
        secret,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def get_store(settings: Settings = Depends(get_settings)) -> PaymentStore:
    settings.require_store()
    if settings.STORE_BACKEND == "rest":
        return RestPaymentStore(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
        )
    return SqlPaymentStore(engine)


def require_row(session, model, key, label: str):
    """Load a referenced row or fail the request with a 400."""
    row = session.get(model, key)
    if row is None:
        raise HTTPException(status_code=400, detail=f"{label} not found")
    return row
