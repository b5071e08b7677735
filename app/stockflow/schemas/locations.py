from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

LocationType = Literal["store", "warehouse"]


class LocationContactFields(BaseModel):
    manager_ref: str | None = None
    address_line_1: str | None = None
    address_line_2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    phone_number: str | None = None
    email: str | None = None
    notes: str | None = None


class LocationCreateRequest(LocationContactFields):
    location_name: str = Field(min_length=1, max_length=255)
    location_code: str = Field(min_length=1, max_length=50)
    location_type: LocationType

    model_config = {
        "json_schema_extra": {
            "example": {
                "location_name": "Main Warehouse",
                "location_code": "wh-main",
                "location_type": "warehouse",
                "city": "Pune",
            }
        }
    }


class LocationUpdateRequest(LocationContactFields):
    location_name: str | None = Field(default=None, max_length=255)
    location_code: str | None = Field(default=None, max_length=50)
    location_type: LocationType | None = None
    is_active: bool | None = None


class LocationResponse(LocationContactFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_name: str
    location_code: str
    location_type: str
    is_active: bool
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    deactivated_at: datetime | None = None


class LocationStats(BaseModel):
    total: int
    stores: int
    warehouses: int
    active: int


class LocationListResponse(BaseModel):
    locations: list[LocationResponse]
    stats: LocationStats
