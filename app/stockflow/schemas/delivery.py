from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

DeliveryStatus = Literal["pending", "picked_up", "in_transit", "delivered"]


class DeliveryVehicleFields(BaseModel):
    vehicle_number: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    delivery_notes: str | None = None


class DeliveryAssignmentCreateRequest(DeliveryVehicleFields):
    assigned_to: str = Field(min_length=1, max_length=255)


class ItemDeliveredQuantity(BaseModel):
    item_id: str
    quantity_delivered: int


class DeliveryUpdateRequest(DeliveryVehicleFields):
    delivery_status: DeliveryStatus | None = None
    recipient_name: str | None = None
    item_quantities: list[ItemDeliveredQuantity] = []


class DeliveryAssignmentResponse(DeliveryVehicleFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transfer_id: UUID
    assignment_seq: int
    assigned_to: str
    assigned_by: str
    assigned_at: datetime
    delivery_status: str
    picked_up_at: datetime | None = None
    delivered_at: datetime | None = None
    recipient_name: str | None = None


class DeliveryAssignmentListResponse(BaseModel):
    assignments: list[DeliveryAssignmentResponse]


class DeliveryUpdateResponse(BaseModel):
    assignment: DeliveryAssignmentResponse
    transfer_status: str
