"""transfers and transfer lines

Revision ID: 0003_stockflow_transfers
Revises: 0002_stockflow_sales
Create Date: 2026-09-08 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_stockflow_transfers"
down_revision = "0002_stockflow_sales"
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
        "transfers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("origin_store_id", GUID(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("destination_store_id", GUID(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending", index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("sales.id"), nullable=True),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("created_by_name", sa.String(length=255), nullable=True),
        sa.Column("dispatched_by", sa.String(length=100), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
        sa.Column("received_by", sa.String(length=100), nullable=True),
        sa.Column("received_by_name", sa.String(length=255), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=100), nullable=True),
        sa.Column("cancelled_by_name", sa.String(length=255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "transfer_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False, index=True),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_reference", sa.String(length=100), nullable=True),
        sa.Column("requested_qty", sa.Integer(), nullable=False),
        sa.Column("from_location", sa.String(length=20), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("received_qty", sa.Integer(), nullable=True),
        sa.Column("received_location", sa.String(length=20), nullable=True),
        sa.Column("receiving_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("requested_qty > 0", name="ck_transfer_lines_requested_positive"),
        sa.CheckConstraint(
            "received_qty IS NULL OR (received_qty >= 0 AND received_qty <= requested_qty)",
            name="ck_transfer_lines_received_bounds",
        ),
    )
    op.create_index(
        "ix_transfer_lines_open_reservation",
        "transfer_lines",
        ["product_id", "from_location"],
    )


def downgrade() -> None:
    op.drop_index("ix_transfer_lines_open_reservation", table_name="transfer_lines")
    op.drop_table("transfer_lines")
    op.drop_table("transfers")
