"""sales, sale lines and payments

Revision ID: 0002_stockflow_sales
Revises: 0001_stockflow_core
Create Date: 2026-09-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_stockflow_sales"
down_revision = "0001_stockflow_core"
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
        "sales",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("invoice_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("store_id", GUID(), sa.ForeignKey("stores.id"), nullable=False, index=True),
        sa.Column("buyer_store_id", GUID(), sa.ForeignKey("stores.id"), nullable=True),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("created_by_name", sa.String(length=255), nullable=True),
        sa.Column("cancelled_by", sa.String(length=100), nullable=True),
        sa.Column("cancelled_by_name", sa.String(length=255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "sale_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("sales.id"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", GUID(), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(14, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "payments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("sales.id"), nullable=False, index=True),
        sa.Column("method", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("cancelled_by", sa.String(length=100), nullable=True),
        sa.Column("cancelled_by_name", sa.String(length=255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("sale_lines")
    op.drop_table("sales")
