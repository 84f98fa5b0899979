"""Initial migration - tracked products and margin alerts.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Enums store member names, matching sqlalchemy.Enum(LifecycleStatus)
    lifecycle_status_enum = postgresql.ENUM(
        "ACTIVE", "PAUSED", "OUT_OF_STOCK",
        name="lifecyclestatus",
        create_type=False,
    )
    lifecycle_status_enum.create(op.get_bind(), checkfirst=True)

    alert_severity_enum = postgresql.ENUM(
        "WARNING", "CRITICAL",
        name="alertseverity",
        create_type=False,
    )
    alert_severity_enum.create(op.get_bind(), checkfirst=True)

    # Create tracked_products table
    op.create_table(
        "tracked_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("identifier", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("marketplace", sa.String(50), nullable=False, server_default="amazon"),
        # Pricing
        sa.Column("cost_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("list_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("compare_at_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("competitor_prices", postgresql.JSON(), nullable=False, server_default="{}"),
        sa.Column("margin_percent", sa.Numeric(10, 4), nullable=True),
        # Discovery
        sa.Column("demand_score", sa.Float(), nullable=True),
        # Margin state
        sa.Column("margin_below_threshold_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "lifecycle_status",
            postgresql.ENUM("ACTIVE", "PAUSED", "OUT_OF_STOCK", name="lifecyclestatus", create_type=False),
            nullable=False,
            server_default="ACTIVE",
            index=True,
        ),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Create margin_alerts table
    op.create_table(
        "margin_alerts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tracked_product_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tracked_products.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("product_identifier", sa.String(255), nullable=False, index=True),
        # Alert
        sa.Column(
            "severity",
            postgresql.ENUM("WARNING", "CRITICAL", name="alertseverity", create_type=False),
            nullable=False,
        ),
        sa.Column("margin_percent", sa.Numeric(10, 4), nullable=False),
        sa.Column("threshold_percent", sa.Numeric(10, 4), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("auto_action", sa.String(50), nullable=True),
        sa.Column("suggested_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("margin_alerts")
    op.drop_table("tracked_products")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS alertseverity")
    op.execute("DROP TYPE IF EXISTS lifecyclestatus")
