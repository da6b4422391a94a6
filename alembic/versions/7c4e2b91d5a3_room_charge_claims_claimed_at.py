"""Rename room_charge_claims.created_at to claimed_at

Revision ID: 7c4e2b91d5a3
Revises: 3a1f9c2d7b10
Create Date: 2026-10-18 15:40:02.118734

"""

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "7c4e2b91d5a3"
down_revision = "3a1f9c2d7b10"
branch_labels = None
depends_on = None

SCHEMA = "frontdesk"


def upgrade() -> None:
    """Upgrade schema."""
    op.alter_column("room_charge_claims", "created_at", new_column_name="claimed_at", schema=SCHEMA)


def downgrade() -> None:
    """Downgrade schema."""
    op.alter_column("room_charge_claims", "claimed_at", new_column_name="created_at", schema=SCHEMA)
