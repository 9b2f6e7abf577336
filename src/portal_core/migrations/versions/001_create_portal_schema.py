"""Create portal schema with profiles, positions and audit_log tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "portal"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # profiles (role lookup)
    op.create_table(
        "profiles",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("role", sa.Text, nullable=False, server_default="investor"),
        sa.Column("full_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'investor')", name="ck_profiles_role"),
        schema=SCHEMA,
    )

    # positions
    op.create_table(
        "positions",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("ticker", sa.Text, nullable=True),
        sa.Column("sector", sa.Text, nullable=True),
        sa.Column("status", sa.String(8), nullable=False, server_default="Draft"),
        sa.Column("visibility", sa.String(12), nullable=False, server_default="admin_only"),
        sa.Column("entry_date", sa.Date, nullable=False),
        sa.Column("opened_date", sa.Date, nullable=True),
        sa.Column("entry_price", sa.Numeric, nullable=False),
        sa.Column("quantity", sa.Numeric, nullable=False),
        sa.Column("cost_basis", sa.Numeric, nullable=False),
        sa.Column("target_price", sa.Numeric, nullable=True),
        sa.Column("market_price", sa.Numeric, nullable=True),
        sa.Column("price_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closing_price", sa.Numeric, nullable=True),
        sa.Column("closing_date", sa.Date, nullable=True),
        sa.Column("realized_pnl", sa.Numeric, nullable=True),
        sa.Column("public_note", sa.Text, nullable=False, server_default=""),
        sa.Column("notes_admin", sa.Text, nullable=False, server_default=""),
        sa.Column("tags", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_by", sa.Text, nullable=True),
        sa.Column("updated_by", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.CheckConstraint(
            "status IN ('Draft', 'Live', 'Closed', 'Archived')", name="ck_positions_status",
        ),
        sa.CheckConstraint(
            "visibility IN ('admin_only', 'members_view')", name="ck_positions_visibility",
        ),
        sa.CheckConstraint("entry_price > 0", name="ck_positions_entry_price_positive"),
        sa.CheckConstraint("quantity > 0", name="ck_positions_quantity_positive"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_positions_status_visibility",
        "positions",
        ["status", "visibility"],
        schema=SCHEMA,
    )
    op.create_index("ix_positions_entry_date", "positions", ["entry_date"], schema=SCHEMA)

    # audit_log (append-only, no cascade from positions)
    op.create_table(
        "audit_log",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(12), nullable=False),
        sa.Column(
            "position_id", sa.BigInteger,
            sa.ForeignKey(f"{SCHEMA}.positions.id"),
            nullable=True,
        ),
        sa.Column("user_id", sa.Text, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("diff_summary", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.CheckConstraint(
            "action IN ('create', 'edit', 'close', 'archive', 'publish', "
            "'unpublish', 'restore', 'price_update')",
            name="ck_audit_log_action",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_audit_log_position_ts",
        "audit_log",
        ["position_id", "timestamp"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_index("ix_audit_log_position_ts", table_name="audit_log", schema=SCHEMA)
    op.drop_table("audit_log", schema=SCHEMA)
    op.drop_index("ix_positions_entry_date", table_name="positions", schema=SCHEMA)
    op.drop_index("ix_positions_status_visibility", table_name="positions", schema=SCHEMA)
    op.drop_table("positions", schema=SCHEMA)
    op.drop_table("profiles", schema=SCHEMA)
