from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.stockflow.schemas.transfers import Unit


class ProductDetailFields(BaseModel):
    product_code: str | None = Field(default=None, max_length=100)
    product_category: str | None = Field(default=None, max_length=100)
    brand: str | None = Field(default=None, max_length=120)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    image_url: str | None = Field(default=None, max_length=500)
    notes: str | None = None


class ProductCreateRequest(ProductDetailFields):
    product_name: str = Field(min_length=1, max_length=255)
    unit: Unit = "pcs"
    currency: str = Field(default="INR", min_length=3, max_length=3)

    model_config = {
        "json_schema_extra": {
            "example": {
                "product_name": "Cement 50kg",
                "product_code": "CEM-50",
                "product_category": "Building material",
                "unit": "box",
                "price": "420.00",
            }
        }
    }


class ProductUpdateRequest(ProductDetailFields):
    product_name: str | None = Field(default=None, max_length=255)
    unit: Unit | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    is_active: bool | None = None


class ProductResponse(ProductDetailFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_ref: str
    product_name: str
    unit: str
    currency: str
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None


class ProductStats(BaseModel):
    total: int
    active: int
    categories: int


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    stats: ProductStats
    categories: list[str]


class ProductDeletedResponse(BaseModel):
    id: UUID
    deleted_at: datetime
