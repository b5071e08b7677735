from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class RoleGrantCreateRequest(BaseModel):
    user_ref: str = Field(min_length=1, max_length=255)
    location_id: str
    role: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_ref": "user-42",
                "location_id": "6b1f3c1e-8d7a-4b55-9f1e-2c1d9a7e5b10",
                "role": "store_manager",
            }
        }
    }


class RoleGrantResponse(BaseModel):
    id: UUID
    user_ref: str
    location_id: UUID
    location_name: str | None = None
    location_code: str | None = None
    location_type: str | None = None
    role: str
    is_active: bool
    assigned_by: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class RoleGrantListResponse(BaseModel):
    grants: list[RoleGrantResponse]


class MyRolesResponse(BaseModel):
    user_ref: str
    grants: list[RoleGrantResponse]
    is_store_manager: bool
    is_warehouse_manager: bool
