"""initial schema

Revision ID: 4c1e9b7a2f10
Revises:
Create Date: 2026-10-19 09:12:41.208311

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c1e9b7a2f10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, listings, rentals and transactions."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.Text, nullable=False, unique=True),
        sa.Column("billing_customer_ref", sa.Text, nullable=True),
        sa.Column("created_at", sa.Text, nullable=False),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("domain_name", sa.Text, nullable=False, unique=True),
        sa.Column("registrar", sa.Text, nullable=False),
        sa.Column("credentials_encrypted", sa.Text, nullable=False),
        sa.Column("allowed_record_types", sa.Text, nullable=False, server_default="[]"),
        sa.Column("max_subdomains", sa.Integer, nullable=False, server_default="1"),
        sa.Column("verification_token", sa.Text, nullable=True),
        sa.Column("is_verified", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("price", sa.Text, nullable=False),
        sa.Column("pricing_period", sa.Text, nullable=False, server_default="monthly"),
        sa.Column("created_at", sa.Text, nullable=False),
        sa.Column("updated_at", sa.Text, nullable=False),
        sa.CheckConstraint(
            "registrar IN ('cloudflare', 'route53', 'namecheap')",
            name="ck_listings_registrar",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="ck_listings_status",
        ),
        sa.CheckConstraint(
            "pricing_period IN ('monthly', 'yearly')",
            name="ck_listings_pricing_period",
        ),
        sa.CheckConstraint("max_subdomains > 0", name="ck_listings_max_subdomains"),
    )
    op.create_index("idx_listings_owner", "listings", ["owner_id"])
    op.create_index("idx_listings_status", "listings", ["status"])

    op.create_table(
        "rentals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("listing_id", sa.Integer, sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("renter_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("subdomain", sa.Text, nullable=False),
        sa.Column("full_domain", sa.Text, nullable=False),
        sa.Column("record_type", sa.Text, nullable=False),
        sa.Column("record_value", sa.Text, nullable=False),
        sa.Column("period_start", sa.Text, nullable=False),
        sa.Column("period_end", sa.Text, nullable=False),
        sa.Column("subscription_ref", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("created_at", sa.Text, nullable=False),
        sa.Column("updated_at", sa.Text, nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'cancelled', 'expired')",
            name="ck_rentals_status",
        ),
        sa.CheckConstraint(
            "record_type IN ('A', 'AAAA', 'CNAME', 'TXT', 'MX', 'NS')",
            name="ck_rentals_record_type",
        ),
    )
    op.create_index(
        "idx_rentals_active_subdomain",
        "rentals",
        ["listing_id", "subdomain"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("idx_rentals_subscription", "rentals", ["subscription_ref"])
    op.create_index("idx_rentals_renter", "rentals", ["renter_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rental_id", sa.Integer, sa.ForeignKey("rentals.id"), nullable=False),
        sa.Column("amount", sa.Text, nullable=False),
        sa.Column("payment_ref", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.Text, nullable=False),
        sa.Column("updated_at", sa.Text, nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_transactions_status",
        ),
    )
    op.create_index("idx_transactions_payment_ref", "transactions", ["payment_ref"])
    op.create_index("idx_transactions_rental", "transactions", ["rental_id"])


def downgrade() -> None:
    """Drop all sublease tables (children first)."""
    op.drop_table("transactions")
    op.drop_table("rentals")
    op.drop_table("listings")
    op.drop_table("users")
