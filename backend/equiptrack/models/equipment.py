"""Equipment and equipment type bodies."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from backend.equiptrack.models.common import (
    ApiModel,
    EquipmentCondition,
    EquipmentStatus,
    Pagination,
)


class EquipmentTypeCreate(ApiModel):
    """Request body for POST /equipment-types."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    default_maintenance_interval_days: int | None = Field(None, gt=0)


class EquipmentTypeUpdate(ApiModel):
    """Request body for PUT /equipment-types/{id}; all fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    default_maintenance_interval_days: int | None = Field(None, gt=0)


class EquipmentTypeOut(ApiModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    description: str | None = None
    default_maintenance_interval_days: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class EquipmentCreate(ApiModel):
    """Request body for POST /equipment.

    Tracking code, owning company, creator and timestamps are assigned by
    the server.
    """

    name: str = Field(..., min_length=1, max_length=255)
    equipment_type_id: uuid.UUID | None = None
    serial_number: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    purchase_date: date | None = None
    purchase_price: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    current_status: EquipmentStatus | None = None
    condition: EquipmentCondition | None = None
    location: str | None = Field(None, max_length=255)
    notes: str | None = None
    last_maintenance_date: date | None = None
    next_maintenance_due: date | None = None


class EquipmentUpdate(ApiModel):
    """Request body for PUT /equipment/{id}; omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=255)
    equipment_type_id: uuid.UUID | None = None
    serial_number: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    purchase_date: date | None = None
    purchase_price: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    current_status: EquipmentStatus | None = None
    condition: EquipmentCondition | None = None
    location: str | None = Field(None, max_length=255)
    notes: str | None = None
    last_maintenance_date: date | None = None
    next_maintenance_due: date | None = None


class EquipmentStatusUpdate(ApiModel):
    """Request body for PATCH /equipment/{id}/status."""

    status: EquipmentStatus
    notes: str | None = Field(None, max_length=500)
    location: str | None = Field(None, max_length=255)


class EquipmentTypeRef(ApiModel):
    id: uuid.UUID
    name: str
    description: str | None = None


class StatusHistoryOut(ApiModel):
    id: uuid.UUID
    sequence: int
    old_status: EquipmentStatus | None = None
    new_status: EquipmentStatus
    old_location: str | None = None
    new_location: str
    changed_by: uuid.UUID
    notes: str | None = None
    changed_at: datetime


class AssignmentOut(ApiModel):
    id: uuid.UUID
    assigned_to: uuid.UUID
    assigned_by: uuid.UUID
    assigned_at: datetime
    notes: str | None = None


class EquipmentOut(ApiModel):
    id: uuid.UUID
    company_id: uuid.UUID
    equipment_type_id: uuid.UUID
    equipment_type: EquipmentTypeRef | None = None
    name: str
    serial_number: str | None = None
    model: str | None = None
    purchase_date: date | None = None
    purchase_price: Decimal | None = None
    current_status: EquipmentStatus
    condition: EquipmentCondition
    location: str
    notes: str | None = None
    last_maintenance_date: date | None = None
    next_maintenance_due: date | None = None
    qr_code: str
    photo_urls: list[str] = Field(default_factory=list)
    is_active: bool
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class EquipmentDetail(EquipmentOut):
    """Single-equipment read: current state plus recent history."""

    status_history: list[StatusHistoryOut] = Field(default_factory=list)
    assignments: list[AssignmentOut] = Field(default_factory=list)


class EquipmentPage(ApiModel):
    equipment: list[EquipmentOut]
    pagination: Pagination
