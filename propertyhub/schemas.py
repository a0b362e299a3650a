from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import MaintenancePriority, MaintenanceStatus, PaymentStatus, PropertyStatus


# --- payment handlers -------------------------------------------------------


class InitializeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    payment_id: str = Field(..., alias="paymentId", min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    amount: Decimal = Field(..., gt=0, description="Amount in major currency unit")
    callback_url: str = Field(..., alias="callbackUrl", min_length=1)


class InitializeResponse(BaseModel):
    authorization_url: str
    access_code: str
    reference: str


class VerifyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reference: str = Field(..., min_length=1)


class VerifiedTransaction(BaseModel):
    amount: float
    reference: str
    paid_at: Optional[str] = None


class VerifyResponse(BaseModel):
    success: bool
    message: str
    data: Optional[VerifiedTransaction] = None

    def body(self) -> Dict[str, Any]:
        # negative outcomes carry no data key at all
        return self.model_dump(exclude_none=not self.success)


# --- records ----------------------------------------------------------------


class PartialUpdate(BaseModel):
    """PATCH body: unset fields are left alone, NOT NULL columns may not be cleared."""

    not_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        cleared = [
            name for name in self.not_nullable
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"cannot be null: {', '.join(cleared)}")
        return self


class PropertyCreate(BaseModel):
    title: str
    address: str
    city: str
    state: Optional[str] = None
    country: Optional[str] = None
    property_type: str = "apartment"
    rent_amount: Decimal = Field(..., ge=0)
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    description: Optional[str] = None
    status: PropertyStatus = PropertyStatus.available
    manager_id: Optional[int] = None


class PropertyUpdate(PartialUpdate):
    not_nullable = ("title", "address", "city", "property_type", "rent_amount", "status")

    title: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    property_type: Optional[str] = None
    rent_amount: Optional[Decimal] = Field(None, ge=0)
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    description: Optional[str] = None
    status: Optional[PropertyStatus] = None
    manager_id: Optional[int] = None


class TenantCreate(BaseModel):
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[int] = None
    property_id: Optional[str] = None
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None
    monthly_rent: Optional[Decimal] = Field(None, ge=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True


class TenantUpdate(PartialUpdate):
    not_nullable = ("full_name", "is_active")

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    property_id: Optional[str] = None
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None
    monthly_rent: Optional[Decimal] = Field(None, ge=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PaymentCreate(BaseModel):
    tenant_id: str
    property_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0, description="Payment amount")
    due_date: date
    description: Optional[str] = None
    status: PaymentStatus = PaymentStatus.pending
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None


class PaymentUpdate(PartialUpdate):
    not_nullable = ("amount", "due_date", "status")

    property_id: Optional[str] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    description: Optional[str] = None
    status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    property_id: Optional[str]
    amount: Decimal
    due_date: date
    payment_date: Optional[datetime]
    status: str
    payment_method: Optional[str]
    payment_reference: Optional[str]
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


class PaymentStats(BaseModel):
    total: Decimal
    pending: Decimal
    completed: Decimal
    overdue: int


class MaintenanceCreate(BaseModel):
    property_id: str
    tenant_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: MaintenancePriority = MaintenancePriority.medium


class MaintenanceUpdate(PartialUpdate):
    not_nullable = ("title", "priority", "status")

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[MaintenancePriority] = None
    status: Optional[MaintenanceStatus] = None
