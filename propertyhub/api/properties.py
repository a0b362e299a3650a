from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from ..auth import get_current_user, require_staff
from ..db import engine
from ..deps import require_row
from ..ledger import record_audit
from ..models import MaintenanceRequest, Payment, Property, Role, Tenant, User, utcnow
from ..schemas import (
    MaintenanceCreate,
    MaintenanceUpdate,
    PropertyCreate,
    PropertyUpdate,
    TenantCreate,
    TenantUpdate,
)

router = APIRouter(prefix="/api/v1", tags=["properties"])


def _dump(row) -> dict:
    return row.model_dump()


def _apply(row, changes) -> None:
    for key, value in changes.model_dump(exclude_unset=True).items():
        if hasattr(value, "value"):
            value = value.value
        setattr(row, key, value)
    row.updated_at = utcnow()


# --- properties -------------------------------------------------------------


@router.get("/properties")
def list_properties(
    status: Optional[str] = None,
    city: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    with Session(engine) as session:
        stmt = select(Property)
        if status:
            stmt = stmt.where(Property.status == status)
        if city:
            stmt = stmt.where(Property.city == city)
        return [_dump(p) for p in session.exec(stmt.order_by(Property.created_at.desc())).all()]


@router.post("/properties")
def create_property(payload: PropertyCreate, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        data = payload.model_dump()
        data["status"] = payload.status.value
        if data["manager_id"] is None and current_user.role == Role.property_manager.value:
            data["manager_id"] = current_user.id
        elif data["manager_id"] is not None:
            require_row(session, User, data["manager_id"], "manager")
        p = Property(**data)
        session.add(p)
        session.commit()
        session.refresh(p)
        return _dump(p)


@router.get("/properties/{property_id}")
def get_property(property_id: str, current_user: User = Depends(get_current_user)):
    with Session(engine) as session:
        p = session.get(Property, property_id)
        if not p:
            raise HTTPException(status_code=404, detail="property not found")
        return _dump(p)


@router.patch("/properties/{property_id}")
def update_property(property_id: str, payload: PropertyUpdate, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        p = session.get(Property, property_id)
        if not p:
            raise HTTPException(status_code=404, detail="property not found")
        if payload.manager_id is not None:
            require_row(session, User, payload.manager_id, "manager")
        _apply(p, payload)
        session.add(p)
        session.commit()
        session.refresh(p)
        return _dump(p)


@router.delete("/properties/{property_id}")
def delete_property(property_id: str, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        p = session.get(Property, property_id)
        if not p:
            raise HTTPException(status_code=404, detail="property not found")
        if session.exec(select(Tenant.id).where(Tenant.property_id == p.id)).first():
            raise HTTPException(status_code=400, detail="property still has tenants")
        if session.exec(select(Payment.id).where(Payment.property_id == p.id)).first():
            raise HTTPException(status_code=400, detail="property has payment records")
        # maintenance tickets go with the property
        tickets = session.exec(
            select(MaintenanceRequest).where(MaintenanceRequest.property_id == p.id)
        ).all()
        for m in tickets:
            session.delete(m)
        session.flush()
        session.delete(p)
        record_audit(session, current_user.id, "delete_property", f"property:{property_id}", None)
        session.commit()
        return {"deleted": True}


# --- tenants ----------------------------------------------------------------


@router.get("/tenants", dependencies=[Depends(require_staff)])
def list_tenants(property_id: Optional[str] = None, active: Optional[bool] = None):
    with Session(engine) as session:
        stmt = select(Tenant)
        if property_id:
            stmt = stmt.where(Tenant.property_id == property_id)
        if active is not None:
            stmt = stmt.where(Tenant.is_active == active)
        return [_dump(t) for t in session.exec(stmt.order_by(Tenant.created_at.desc())).all()]


@router.post("/tenants", dependencies=[Depends(require_staff)])
def create_tenant(payload: TenantCreate):
    with Session(engine) as session:
        if payload.property_id is not None:
            require_row(session, Property, payload.property_id, "property")
        if payload.user_id is not None:
            require_row(session, User, payload.user_id, "user")
        if payload.lease_start and payload.lease_end and payload.lease_end < payload.lease_start:
            raise HTTPException(status_code=400, detail="lease_end before lease_start")
        t = Tenant(**payload.model_dump())
        session.add(t)
        session.commit()
        session.refresh(t)
        return _dump(t)


@router.get("/tenants/{tenant_id}")
def get_tenant(tenant_id: str, current_user: User = Depends(get_current_user)):
    with Session(engine) as session:
        t = session.get(Tenant, tenant_id)
        if not t or (current_user.role == Role.tenant.value and t.user_id != current_user.id):
            raise HTTPException(status_code=404, detail="tenant not found")
        return _dump(t)


@router.patch("/tenants/{tenant_id}", dependencies=[Depends(require_staff)])
def update_tenant(tenant_id: str, payload: TenantUpdate):
    with Session(engine) as session:
        t = session.get(Tenant, tenant_id)
        if not t:
            raise HTTPException(status_code=404, detail="tenant not found")
        if payload.property_id is not None:
            require_row(session, Property, payload.property_id, "property")
        _apply(t, payload)
        if t.lease_start and t.lease_end and t.lease_end < t.lease_start:
            raise HTTPException(status_code=400, detail="lease_end before lease_start")
        session.add(t)
        session.commit()
        session.refresh(t)
        return _dump(t)


@router.delete("/tenants/{tenant_id}")
def delete_tenant(tenant_id: str, current_user: User = Depends(require_staff)):
    with Session(engine) as session:
        t = session.get(Tenant, tenant_id)
        if not t:
            raise HTTPException(status_code=404, detail="tenant not found")
        if session.exec(select(Payment.id).where(Payment.tenant_id == t.id)).first():
            raise HTTPException(status_code=400, detail="tenant has payment records")
        # tickets stay on the property, without a filer
        tickets = session.exec(
            select(MaintenanceRequest).where(MaintenanceRequest.tenant_id == t.id)
        ).all()
        for m in tickets:
            m.tenant_id = None
            session.add(m)
        session.flush()
        session.delete(t)
        record_audit(session, current_user.id, "delete_tenant", f"tenant:{tenant_id}", None)
        session.commit()
        return {"deleted": True}


# --- maintenance ------------------------------------------------------------


@router.get("/maintenance")
def list_maintenance(
    property_id: Optional[str] = None,
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
):
    with Session(engine) as session:
        stmt = select(MaintenanceRequest)
        if property_id:
            stmt = stmt.where(MaintenanceRequest.property_id == property_id)
        if status:
            stmt = stmt.where(MaintenanceRequest.status == status)
        if current_user.role == Role.tenant.value:
            own = select(Tenant.id).where(Tenant.user_id == current_user.id)
            stmt = stmt.where(MaintenanceRequest.tenant_id.in_(own))
        stmt = stmt.order_by(MaintenanceRequest.created_at.desc())
        return [_dump(m) for m in session.exec(stmt).all()]


@router.post("/maintenance")
def create_maintenance(payload: MaintenanceCreate, current_user: User = Depends(get_current_user)):
    with Session(engine) as session:
        require_row(session, Property, payload.property_id, "property")
        data = payload.model_dump()
        data["priority"] = payload.priority.value
        if current_user.role == Role.tenant.value:
            # tenants file requests as themselves
            tenant = session.exec(select(Tenant).where(Tenant.user_id == current_user.id)).first()
            if not tenant:
                raise HTTPException(status_code=403, detail="no tenant record for user")
            data["tenant_id"] = tenant.id
        elif data["tenant_id"] is not None:
            require_row(session, Tenant, data["tenant_id"], "tenant")
        m = MaintenanceRequest(**data)
        session.add(m)
        session.commit()
        session.refresh(m)
        return _dump(m)


@router.patch("/maintenance/{request_id}", dependencies=[Depends(require_staff)])
def update_maintenance(request_id: str, payload: MaintenanceUpdate):
    with Session(engine) as session:
        m = session.get(MaintenanceRequest, request_id)
        if not m:
            raise HTTPException(status_code=404, detail="maintenance request not found")
        _apply(m, payload)
        session.add(m)
        session.commit()
        session.refresh(m)
        return _dump(m)
