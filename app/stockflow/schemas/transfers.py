from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.stockflow.schemas.delivery import DeliveryAssignmentResponse
from app.stockflow.schemas.packing import PackingTaskResponse

Priority = Literal["low", "normal", "high", "urgent"]
Unit = Literal["pcs", "kg", "box"]
TransferTab = Literal["all", "my_requests", "approvals", "packing", "logistics"]


class TransferItemCreate(BaseModel):
    product_id: str | None = None
    product_name: str | None = Field(default=None, max_length=255)
    product_code: str | None = None
    product_category: str | None = None
    unit: Unit = "pcs"
    quantity_requested: int
    item_notes: str | None = None


class TransferCreateRequest(BaseModel):
    source_location_id: str
    destination_location_id: str
    priority: Priority = "normal"
    request_notes: str | None = None
    internal_notes: str | None = None
    expected_delivery_date: date | None = None
    items: list[TransferItemCreate]

    model_config = {
        "json_schema_extra": {
            "example": {
                "source_location_id": "6b1f3c1e-8d7a-4b55-9f1e-2c1d9a7e5b10",
                "destination_location_id": "0c5e2b9a-3f61-4d7b-a2f4-8e9b1c6d2a33",
                "priority": "high",
                "request_notes": "Weekend restock",
                "items": [{"product_name": "Cement 50kg", "quantity_requested": 10, "unit": "box"}],
            }
        }
    }


class TransferItemUpsert(BaseModel):
    id: str | None = None
    product_id: str | None = None
    product_name: str | None = Field(default=None, max_length=255)
    product_code: str | None = None
    product_category: str | None = None
    unit: Unit | None = None
    quantity_requested: int | None = None
    item_notes: str | None = None


class TransferUpdateRequest(BaseModel):
    priority: Priority | None = None
    request_notes: str | None = None
    internal_notes: str | None = None
    expected_delivery_date: date | None = None
    items: list[TransferItemUpsert] | None = None


class TransferApprovalRequest(BaseModel):
    action: Literal["approve", "reject"]
    rejection_reason: str | None = None
    notes: str | None = None


class TransferCancelRequest(BaseModel):
    notes: str | None = None


class LocationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_name: str
    location_code: str
    location_type: str
    city: str | None = None


class TransferItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID | None = None
    product_name: str
    product_code: str | None = None
    product_category: str | None = None
    unit: str
    quantity_requested: int
    quantity_packed: int
    quantity_delivered: int
    item_notes: str | None = None


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transfer_number: str
    source_location_id: UUID
    destination_location_id: UUID
    source: LocationSummary | None = None
    destination: LocationSummary | None = None
    status: str
    priority: str
    request_notes: str | None = None
    internal_notes: str | None = None
    expected_delivery_date: date | None = None
    requested_by: str
    requested_at: datetime
    store_approved_by: str | None = None
    store_approved_at: datetime | None = None
    warehouse_approved_by: str | None = None
    warehouse_approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    dispatched_at: datetime | None = None
    delivered_at: datetime | None = None
    recipient_name: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime | None = None
    items: list[TransferItemResponse] = []


class StatusLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sequence: int
    from_status: str | None = None
    to_status: str
    changed_by: str
    changed_at: datetime
    notes: str | None = None


class TransferStats(BaseModel):
    total: int = 0
    requested: int = 0
    in_progress: int = 0
    delivered: int = 0
    rejected: int = 0


class TransferListResponse(BaseModel):
    transfers: list[TransferResponse]
    stats: TransferStats


class TransferDeletedResponse(BaseModel):
    id: UUID
    transfer_number: str
    deleted_at: datetime


class TransferDetailResponse(BaseModel):
    transfer: TransferResponse
    items: list[TransferItemResponse]
    status_log: list[StatusLogEntryResponse]
    packing_tasks: list[PackingTaskResponse]
    delivery_assignments: list[DeliveryAssignmentResponse]
