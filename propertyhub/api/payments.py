from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from ..auth import get_current_user, require_staff
from ..db import engine
from ..deps import require_row
from ..ledger import LedgerError, apply_payment_update, mark_overdue, payment_stats, record_audit
from ..models import Payment, PaymentStatus, Property, Role, Tenant, User, utcnow
from ..schemas import PaymentCreate, PaymentRead, PaymentStats, PaymentUpdate

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


def _visible(stmt, user: User):
    # tenants only ever see payments booked against their own tenant rows
    if user.role == Role.tenant.value:
        own = select(Tenant.id).where(Tenant.user_id == user.id)
        stmt = stmt.where(Payment.tenant_id.in_(own))
    return stmt


def _get_visible(session: Session, payment_id: str, user: User) -> Payment:
    p = session.exec(_visible(select(Payment).where(Payment.id == payment_id), user)).first()
    if not p:
        raise HTTPException(status_code=404, detail="payment not found")
    return p


@router.get("", response_model=List[PaymentRead])
def list_payments(
    status: Optional[PaymentStatus] = None,
    tenant_id: Optional[str] = None,
    property_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    with Session(engine) as session:
        stmt = select(Payment)
        if status is not None:
            stmt = stmt.where(Payment.status == status.value)
        if tenant_id:
            stmt = stmt.where(Payment.tenant_id == tenant_id)
        if property_id:
            stmt = stmt.where(Payment.property_id == property_id)
        stmt = _visible(stmt, current_user).order_by(Payment.created_at.desc())
        return [PaymentRead.model_validate(p) for p in session.exec(stmt).all()]


@router.get("/stats", response_model=PaymentStats)
def get_payment_stats(current_user: User = Depends(get_current_user)):
    with Session(engine) as session:
        payments = session.exec(_visible(select(Payment), current_user)).all()
        return payment_stats(payments)


@router.post("/mark-overdue")
def api_mark_overdue(on: Optional[date] = None, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        ids = mark_overdue(session, on or date.today(), actor_id=current_user.id)
        session.commit()
        return {"updated": len(ids), "payment_ids": ids}


@router.post("", response_model=PaymentRead)
def create_payment(payload: PaymentCreate, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        require_row(session, Tenant, payload.tenant_id, "tenant")
        if payload.property_id is not None:
            require_row(session, Property, payload.property_id, "property")
        completed = payload.status == PaymentStatus.completed
        if completed and not payload.payment_method:
            raise HTTPException(status_code=400, detail="completed payments need a payment method")
        if payload.payment_reference and not completed:
            raise HTTPException(
                status_code=400, detail="payment_reference can only be set on a completed payment"
            )
        data = payload.model_dump()
        data["status"] = payload.status.value
        p = Payment(**data)
        if p.status == PaymentStatus.completed.value:
            p.payment_date = utcnow()
        session.add(p)
        session.flush()
        record_audit(session, current_user.id, "create_payment", None, f"payment:{p.id}")
        session.commit()
        session.refresh(p)
        return PaymentRead.model_validate(p)


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: str, current_user: User = Depends(get_current_user)):
    with Session(engine) as session:
        return PaymentRead.model_validate(_get_visible(session, payment_id, current_user))


@router.patch("/{payment_id}", response_model=PaymentRead)
def update_payment(payment_id: str, payload: PaymentUpdate, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        p = session.get(Payment, payment_id)
        if not p:
            raise HTTPException(status_code=404, detail="payment not found")
        if payload.property_id is not None:
            require_row(session, Property, payload.property_id, "property")
        try:
            apply_payment_update(session, p, payload, actor_id=current_user.id)
        except LedgerError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        session.commit()
        session.refresh(p)
        return PaymentRead.model_validate(p)
