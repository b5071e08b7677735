"""packing tasks and delivery assignments

Revision ID: 0003_packing_delivery
Revises: 0002_transfers
Create Date: 2026-09-08 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_packing_delivery"
down_revision = "0002_transfers"
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
        "transfer_packing_tasks",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False),
        sa.Column("assigned_to", sa.String(length=255), nullable=False),
        sa.Column("assigned_by", sa.String(length=255), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.Column("task_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("packing_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_transfer_packing_tasks_transfer_id", "transfer_packing_tasks", ["transfer_id"])
    op.create_index("ix_transfer_packing_tasks_assigned_to", "transfer_packing_tasks", ["assigned_to"])
    op.create_index(
        "ix_transfer_packing_tasks_transfer_status",
        "transfer_packing_tasks",
        ["transfer_id", "task_status"],
    )

    op.create_table(
        "transfer_delivery_assignments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False),
        sa.Column("assigned_to", sa.String(length=255), nullable=False),
        sa.Column("assigned_by", sa.String(length=255), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.Column("delivery_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("vehicle_number", sa.String(length=50), nullable=True),
        sa.Column("driver_name", sa.String(length=255), nullable=True),
        sa.Column("driver_phone", sa.String(length=50), nullable=True),
        sa.Column("delivery_notes", sa.Text(), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("recipient_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_transfer_delivery_assignments_transfer_id", "transfer_delivery_assignments", ["transfer_id"]
    )
    op.create_index(
        "ix_transfer_delivery_assignments_assigned_to", "transfer_delivery_assignments", ["assigned_to"]
    )
    op.create_index(
        "ix_transfer_delivery_transfer_assigned",
        "transfer_delivery_assignments",
        ["transfer_id", "assigned_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_transfer_delivery_transfer_assigned", table_name="transfer_delivery_assignments")
    op.drop_index("ix_transfer_delivery_assignments_assigned_to", table_name="transfer_delivery_assignments")
    op.drop_index("ix_transfer_delivery_assignments_transfer_id", table_name="transfer_delivery_assignments")
    op.drop_table("transfer_delivery_assignments")
    op.drop_index("ix_transfer_packing_tasks_transfer_status", table_name="transfer_packing_tasks")
    op.drop_index("ix_transfer_packing_tasks_assigned_to", table_name="transfer_packing_tasks")
    op.drop_index("ix_transfer_packing_tasks_transfer_id", table_name="transfer_packing_tasks")
    op.drop_table("transfer_packing_tasks")
