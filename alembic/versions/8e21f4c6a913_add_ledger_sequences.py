"""Add per-hotel ledger sequences and folio close reason

Revision ID: 8e21f4c6a913
Revises: 3a7c1e9b2d40
Create Date: 2026-10-19 14:03:52.118907

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "8e21f4c6a913"
down_revision = "3a7c1e9b2d40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "ledger_sequences",
        sa.Column("hotel_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(32), primary_key=True),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.add_column("folios", sa.Column("close_reason", sa.String(20), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column("folios", "close_reason")
    op.drop_table("ledger_sequences")
