"""location and role registries

Revision ID: 0001_registries
Revises:
Create Date: 2026-09-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_registries"
down_revision = None
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


def upgrade() -> None:
    op.create_table(
        "transfer_locations",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("location_name", sa.String(length=255), nullable=False),
        sa.Column("location_code", sa.String(length=50), nullable=False),
        sa.Column("location_type", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("manager_ref", sa.String(length=255), nullable=True),
        sa.Column("address_line_1", sa.String(length=255), nullable=True),
        sa.Column("address_line_2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=120), nullable=True),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("location_type IN ('store', 'warehouse')", name="ck_transfer_locations_type"),
    )
    op.create_index(
        "ix_transfer_locations_location_code", "transfer_locations", ["location_code"], unique=True
    )

    op.create_table(
        "transfer_roles",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_ref", sa.String(length=255), nullable=False),
        sa.Column("location_id", GUID(), sa.ForeignKey("transfer_locations.id"), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("assigned_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_ref", "location_id", "role", name="uq_transfer_roles_user_location_role"),
    )
    op.create_index("ix_transfer_roles_user_ref", "transfer_roles", ["user_ref"])
    op.create_index("ix_transfer_roles_location_id", "transfer_roles", ["location_id"])
    op.create_index("ix_transfer_roles_user_active", "transfer_roles", ["user_ref", "is_active"])


def downgrade() -> None:
    op.drop_index("ix_transfer_roles_user_active", table_name="transfer_roles")
    op.drop_index("ix_transfer_roles_location_id", table_name="transfer_roles")
    op.drop_index("ix_transfer_roles_user_ref", table_name="transfer_roles")
    op.drop_table("transfer_roles")
    op.drop_index("ix_transfer_locations_location_code", table_name="transfer_locations")
    op.drop_table("transfer_locations")
