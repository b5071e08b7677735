"""transfers, items and status log

Revision ID: 0002_transfers
Revises: 0001_registries
Create Date: 2026-09-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_transfers"
down_revision = "0001_registries"
branch_labels = None
depends_on = None


def upgrade() -> None:
    class GUID(sa.TypeDecorator):
        impl = sa.CHAR
        cache_ok = True

        def load_dialect_impl(self, dialect):
            if dialect.name == "postgresql":
                from sqlalchemy.dialects.postgresql import UUID

                return dialect.type_descriptor(UUID(as_uuid=True))
            return dialect.type_descriptor(sa.CHAR(36))

    op.create_table(
        "transfers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_number", sa.String(length=32), nullable=False),
        sa.Column("source_location_id", GUID(), sa.ForeignKey("transfer_locations.id"), nullable=False),
        sa.Column("destination_location_id", GUID(), sa.ForeignKey("transfer_locations.id"), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="requested"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("request_notes", sa.Text(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("requested_by", sa.String(length=255), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("store_approved_by", sa.String(length=255), nullable=True),
        sa.Column("store_approved_at", sa.DateTime(), nullable=True),
        sa.Column("warehouse_approved_by", sa.String(length=255), nullable=True),
        sa.Column("warehouse_approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_by", sa.String(length=255), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("recipient_name", sa.String(length=255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "source_location_id <> destination_location_id", name="ck_transfers_distinct_locations"
        ),
    )
    op.create_index("ix_transfers_transfer_number", "transfers", ["transfer_number"], unique=True)
    op.create_index("ix_transfers_source_location_id", "transfers", ["source_location_id"])
    op.create_index("ix_transfers_destination_location_id", "transfers", ["destination_location_id"])
    op.create_index("ix_transfers_status", "transfers", ["status"])
    op.create_index("ix_transfers_requested_by", "transfers", ["requested_by"])

    op.create_table(
        "transfer_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_code", sa.String(length=100), nullable=True),
        sa.Column("product_category", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=False, server_default="pcs"),
        sa.Column("quantity_requested", sa.Integer(), nullable=False),
        sa.Column("quantity_packed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity_delivered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("quantity_requested >= 1", name="ck_transfer_items_requested_min"),
        sa.CheckConstraint(
            "quantity_packed >= 0 AND quantity_packed <= quantity_requested",
            name="ck_transfer_items_packed_range",
        ),
        sa.CheckConstraint(
            "quantity_delivered >= 0 AND quantity_delivered <= quantity_packed",
            name="ck_transfer_items_delivered_range",
        ),
    )
    op.create_index("ix_transfer_items_transfer_id", "transfer_items", ["transfer_id"])

    op.create_table(
        "transfer_status_log",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(length=30), nullable=True),
        sa.Column("to_status", sa.String(length=30), nullable=False),
        sa.Column("changed_by", sa.String(length=255), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("transfer_id", "sequence", name="uq_transfer_status_log_sequence"),
    )
    op.create_index("ix_transfer_status_log_transfer_id", "transfer_status_log", ["transfer_id"])


def downgrade() -> None:
    op.drop_index("ix_transfer_status_log_transfer_id", table_name="transfer_status_log")
    op.drop_table("transfer_status_log")
    op.drop_index("ix_transfer_items_transfer_id", table_name="transfer_items")
    op.drop_table("transfer_items")
    op.drop_index("ix_transfers_requested_by", table_name="transfers")
    op.drop_index("ix_transfers_status", table_name="transfers")
    op.drop_index("ix_transfers_destination_location_id", table_name="transfers")
    op.drop_index("ix_transfers_source_location_id", table_name="transfers")
    op.drop_index("ix_transfers_transfer_number", table_name="transfers")
    op.drop_table("transfers")
