"""create_engine_state_tables

Revision ID: 4c1d7e2a9b30
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c1d7e2a9b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the snapshot key-value table and the audit trail."""

    # --- state_entries (preferences and runtime blobs) ---
    op.create_table('state_entries',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', postgresql.JSONB(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('key'),
    )

    # --- audit_entries ---
    op.create_table('audit_entries',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=10), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=True,
                  server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_entries_created',
                    'audit_entries', ['created_at'])
    op.create_index('ix_audit_entries_category_created',
                    'audit_entries', ['category', 'created_at'])


def downgrade() -> None:
    """Drop the engine state tables."""
    op.drop_index('ix_audit_entries_category_created', table_name='audit_entries')
    op.drop_index('ix_audit_entries_created', table_name='audit_entries')
    op.drop_table('audit_entries')
    op.drop_table('state_entries')
