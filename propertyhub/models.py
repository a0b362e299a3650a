from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Column, Numeric, String, Text
from sqlmodel import Field, SQLModel


def DecimalColumn(scale: int = 2, precision: int = 18, nullable: bool = True):
    return Column(Numeric(precision, scale), nullable=nullable)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    admin = "admin"
    property_manager = "property_manager"
    tenant = "tenant"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    overdue = "overdue"


class PropertyStatus(str, Enum):
    available = "available"
    occupied = "occupied"
    maintenance = "maintenance"


class MaintenancePriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class MaintenanceStatus(str, Enum):
    open = "open"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(sa_column=Column(String(128), unique=True))
    password_hash: str
    role: str  # admin property_manager tenant
    email: Optional[str] = None


class Property(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    address: str
    city: str
    state: Optional[str] = None
    country: Optional[str] = None
    property_type: str = Field(default="apartment")
    rent_amount: Decimal = Field(sa_column=DecimalColumn(nullable=False))
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=PropertyStatus.available.value)
    manager_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Tenant(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    property_id: Optional[str] = Field(default=None, foreign_key="property.id", index=True)
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None
    monthly_rent: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    security_deposit: Optional[Decimal] = Field(default=None, sa_column=DecimalColumn())
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Payment(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    tenant_id: str = Field(foreign_key="tenant.id", index=True)
    property_id: Optional[str] = Field(default=None, foreign_key="property.id", index=True)
    amount: Decimal = Field(sa_column=DecimalColumn(nullable=False))
    due_date: date
    payment_date: Optional[datetime] = None
    status: str = Field(default=PaymentStatus.pending.value, index=True)
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = Field(default=None, sa_column=Column(String(128)))
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MaintenanceRequest(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    property_id: str = Field(foreign_key="property.id", index=True)
    tenant_id: Optional[str] = Field(default=None, foreign_key="tenant.id")
    title: str
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    priority: str = Field(default=MaintenancePriority.medium.value)
    status: str = Field(default=MaintenanceStatus.open.value)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AuditLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    action: str
    before: Optional[str] = None
    after: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
