"""Create room_charge_claims

Revision ID: 3a1f9c2d7b10
Revises:
Create Date: 2026-10-18 09:12:31.482210

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3a1f9c2d7b10"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "frontdesk"


def upgrade() -> None:
    """Upgrade schema."""
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        "room_charge_claims",
        sa.Column("room_id", sa.String(), nullable=False),
        sa.Column("reservation_id", sa.String(), nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=True),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("claimed_by", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("room_id", "reservation_id"),
        schema=SCHEMA,
    )
    op.create_index(
        op.f("ix_frontdesk_room_charge_claims_date_key"),
        "room_charge_claims",
        ["date_key"],
        unique=False,
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        op.f("ix_frontdesk_room_charge_claims_date_key"),
        table_name="room_charge_claims",
        schema=SCHEMA,
    )
    op.drop_table("room_charge_claims", schema=SCHEMA)
