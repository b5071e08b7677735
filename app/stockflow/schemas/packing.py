from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

PackingTaskStatus = Literal["pending", "in_progress", "completed"]


class PackingTaskCreateRequest(BaseModel):
    assigned_to: str = Field(min_length=1, max_length=255)
    packing_notes: str | None = None


class ItemPackedQuantity(BaseModel):
    item_id: str
    quantity_packed: int


class PackingTaskUpdateRequest(BaseModel):
    task_status: PackingTaskStatus | None = None
    packing_notes: str | None = None
    item_quantities: list[ItemPackedQuantity] = []


class PackingTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transfer_id: UUID
    assigned_to: str
    assigned_by: str
    assigned_at: datetime
    task_status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    packing_notes: str | None = None


class PackingTaskListResponse(BaseModel):
    tasks: list[PackingTaskResponse]


class PackingTaskUpdateResponse(BaseModel):
    task: PackingTaskResponse
    transfer_status: str
