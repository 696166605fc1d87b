"""Canonical catalog, marketplace listings and seller leases.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from marketsync.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "canonical_product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("seller_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_stock", sa.Integer(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_canonical_product"),
    )
    op.create_index(
        "ix_canonical_product_seller_name",
        "canonical_product",
        ["seller_id", "name"],
    )

    op.create_table(
        "marketplace_listing",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("seller_id", sa.String(), nullable=False),
        sa.Column("marketplace", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=True),
        sa.Column("barcode", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "PENDING", "INACTIVE", name="productstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("last_reconciled_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["canonical_product.id"],
            name="fk_marketplace_listing_product_id_canonical_product",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_marketplace_listing"),
        sa.UniqueConstraint("product_id", "marketplace", name="uq_marketplace_listing_product"),
        sa.UniqueConstraint(
            "seller_id",
            "marketplace",
            "external_id",
            name="uq_marketplace_listing_external",
        ),
    )
    op.create_index(
        "ix_marketplace_listing_sku",
        "marketplace_listing",
        ["seller_id", "marketplace", "sku"],
    )

    op.create_table(
        "seller_lease",
        sa.Column("seller_id", sa.String(), nullable=False),
        sa.Column("holder", sa.String(), nullable=False),
        sa.Column("acquired_at", UTCDateTime(), nullable=False),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("seller_id", name="pk_seller_lease"),
    )


def downgrade() -> None:
    op.drop_table("seller_lease")
    op.drop_index("ix_marketplace_listing_sku", table_name="marketplace_listing")
    op.drop_table("marketplace_listing")
    op.drop_index("ix_canonical_product_seller_name", table_name="canonical_product")
    op.drop_table("canonical_product")
