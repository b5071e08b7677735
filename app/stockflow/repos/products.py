from sqlalchemy import or_, select

from app.stockflow.db.models import TransferProduct


class ProductRepository:
    def __init__(self, db):
        self.db = db

    def get_owned(self, product_id, owner_ref: str) -> TransferProduct | None:
        stmt = select(TransferProduct).where(
            TransferProduct.id == product_id,
            TransferProduct.owner_ref == owner_ref,
            TransferProduct.deleted_at.is_(None),
        )
        return self.db.execute(stmt).scalars().first()

    def list_products(
        self,
        owner_ref: str,
        *,
        active_only: bool = False,
        category: str | None = None,
        search: str | None = None,
    ) -> list[TransferProduct]:
        stmt = select(TransferProduct).where(
            TransferProduct.owner_ref == owner_ref,
            TransferProduct.deleted_at.is_(None),
        )
        if active_only:
            stmt = stmt.where(TransferProduct.is_active.is_(True))
        if category:
            stmt = stmt.where(TransferProduct.product_category == category)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    TransferProduct.product_name.ilike(pattern),
                    TransferProduct.product_code.ilike(pattern),
                    TransferProduct.brand.ilike(pattern),
                )
            )
        return self.db.execute(stmt.order_by(TransferProduct.product_name.asc())).scalars().all()

    def add(self, product: TransferProduct) -> TransferProduct:
        self.db.add(product)
        self.db.flush()
        return product
