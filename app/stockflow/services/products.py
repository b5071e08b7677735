"""Per-owner product catalog used to fill transfer line items."""

from __future__ import annotations

from datetime import datetime

from app.stockflow.core.error_catalog import NotFoundError, ValidationError
from app.stockflow.db.models import TransferProduct
from app.stockflow.repos.products import ProductRepository
from app.stockflow.services.ids import parse_id

PRODUCT_UNITS = ("pcs", "kg", "box")
_TEXT_FIELDS = ("product_code", "product_category", "brand", "image_url", "notes")
_UPDATABLE_FIELDS = ("product_name", "unit", "price", "currency", "is_active") + _TEXT_FIELDS


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _require_name(value: str | None) -> str:
    name = _clean(value)
    if not name:
        raise ValidationError("product_name is required", field="product_name")
    return name


def _require_unit(value: str | None) -> str:
    if value not in PRODUCT_UNITS:
        raise ValidationError(
            f"unit must be one of: {', '.join(PRODUCT_UNITS)}",
            field="unit",
            allowed=list(PRODUCT_UNITS),
        )
    return value


def product_categories(products: list[TransferProduct]) -> list[str]:
    return sorted({product.product_category for product in products if product.product_category})


def product_stats(products: list[TransferProduct]) -> dict:
    return {
        "total": len(products),
        "active": sum(1 for product in products if product.is_active),
        "categories": len(product_categories(products)),
    }


class ProductService:
    def __init__(self, db):
        self.db = db
        self.repo = ProductRepository(db)

    def get_product(self, product_id, *, owner_ref: str) -> TransferProduct:
        product = self.repo.get_owned(parse_id(product_id, entity="product"), owner_ref)
        if product is None:
            raise NotFoundError("product not found", product_id=str(product_id))
        return product

    def require_usable(self, product_id, *, owner_ref: str, field: str) -> TransferProduct:
        product = self.repo.get_owned(parse_id(product_id, entity="product"), owner_ref)
        if product is None:
            raise NotFoundError("product not found", product_id=str(product_id), field=field)
        if not product.is_active:
            raise ValidationError(f"{field} refers to an inactive product", field=field)
        return product

    def list_products(
        self,
        *,
        owner_ref: str,
        active_only: bool = False,
        category: str | None = None,
        search: str | None = None,
    ) -> tuple[list[TransferProduct], dict, list[str]]:
        rows = self.repo.list_products(owner_ref, active_only=active_only, category=category, search=search)
        return rows, product_stats(rows), product_categories(rows)

    def create_product(self, *, owner_ref: str, product_name: str, unit: str = "pcs", currency: str = "INR", **fields) -> TransferProduct:
        now = datetime.utcnow()
        product = TransferProduct(
            owner_ref=owner_ref,
            product_name=_require_name(product_name),
            unit=_require_unit(unit),
            price=fields.get("price"),
            currency=currency.strip().upper(),
            is_active=True,
            created_at=now,
            updated_at=now,
            **{key: _clean(fields.get(key)) for key in _TEXT_FIELDS},
        )
        self.repo.add(product)
        self.db.commit()
        return product

    def update_product(self, product_id, patch: dict, *, owner_ref: str) -> TransferProduct:
        product = self.get_product(product_id, owner_ref=owner_ref)
        changes = {key: value for key, value in patch.items() if key in _UPDATABLE_FIELDS}
        if "product_name" in changes:
            changes["product_name"] = _require_name(changes["product_name"])
        if "unit" in changes:
            changes["unit"] = _require_unit(changes["unit"])
        for key in ("currency", "is_active"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if "currency" in changes:
            changes["currency"] = changes["currency"].strip().upper()
        for key in _TEXT_FIELDS:
            if key in changes:
                changes[key] = _clean(changes[key])
        for key, value in changes.items():
            setattr(product, key, value)
        product.updated_at = datetime.utcnow()
        self.db.commit()
        return product

    def delete_product(self, product_id, *, owner_ref: str) -> TransferProduct:
        product = self.get_product(product_id, owner_ref=owner_ref)
        now = datetime.utcnow()
        product.deleted_at = now
        product.updated_at = now
        self.db.commit()
        return product
