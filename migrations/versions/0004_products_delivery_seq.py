"""product catalog, item product link, delivery assignment ordering

Revision ID: 0004_products_delivery_seq
Revises: 0003_packing_delivery
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0004_products_delivery_seq"
down_revision = "0003_packing_delivery"
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def _backfill_assignment_seq() -> None:
    bind = op.get_bind()
    rows = bind.execute(
        sa.text(
            "SELECT id, transfer_id FROM transfer_delivery_assignments "
            "ORDER BY transfer_id, assigned_at, created_at, id"
        )
    ).all()
    counters: dict = {}
    for row in rows:
        counters[row.transfer_id] = counters.get(row.transfer_id, 0) + 1
        bind.execute(
            sa.text("UPDATE transfer_delivery_assignments SET assignment_seq = :seq WHERE id = :id"),
            {"seq": counters[row.transfer_id], "id": row.id},
        )


def upgrade() -> None:
    op.create_table(
        "transfer_products",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("owner_ref", sa.String(length=255), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_code", sa.String(length=100), nullable=True),
        sa.Column("product_category", sa.String(length=100), nullable=True),
        sa.Column("brand", sa.String(length=120), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=False, server_default="pcs"),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("unit IN ('pcs', 'kg', 'box')", name="ck_transfer_products_unit"),
        sa.CheckConstraint("price IS NULL OR price >= 0", name="ck_transfer_products_price"),
    )
    op.create_index("ix_transfer_products_owner_ref", "transfer_products", ["owner_ref"])
    op.create_index("ix_transfer_products_owner_name", "transfer_products", ["owner_ref", "product_name"])

    # plain ADD COLUMN keeps the item CHECK constraints intact on SQLite
    op.add_column("transfer_items", sa.Column("product_id", GUID(), nullable=True))
    op.create_index("ix_transfer_items_product_id", "transfer_items", ["product_id"])

    op.add_column("transfer_delivery_assignments", sa.Column("assignment_seq", sa.Integer(), nullable=True))
    _backfill_assignment_seq()
    with op.batch_alter_table("transfer_delivery_assignments") as batch_op:
        batch_op.alter_column("assignment_seq", existing_type=sa.Integer(), nullable=False)
        batch_op.create_unique_constraint(
            "uq_transfer_delivery_assignment_seq",
            ["transfer_id", "assignment_seq"],
        )


def downgrade() -> None:
    with op.batch_alter_table("transfer_delivery_assignments") as batch_op:
        batch_op.drop_constraint("uq_transfer_delivery_assignment_seq", type_="unique")
        batch_op.drop_column("assignment_seq")
    op.drop_index("ix_transfer_items_product_id", table_name="transfer_items")
    with op.batch_alter_table("transfer_items") as batch_op:
        batch_op.drop_column("product_id")
    op.drop_index("ix_transfer_products_owner_name", table_name="transfer_products")
    op.drop_index("ix_transfer_products_owner_ref", table_name="transfer_products")
    op.drop_table("transfer_products")
