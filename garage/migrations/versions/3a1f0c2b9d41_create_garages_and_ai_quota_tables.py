"""create_garages_and_ai_quota_tables

Revision ID: 3a1f0c2b9d41
Revises:
Create Date: 2026-01-12 09:14:27.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a1f0c2b9d41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('garages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.PrimaryKeyConstraint('id')
    )

    # ai_monthly_quota NULL = unlimited
    op.create_table('garage_settings',
        sa.Column('garage_id', sa.String(length=36), nullable=False),
        sa.Column('ai_monthly_quota', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['garage_id'], ['garages.id'], ),
        sa.PrimaryKeyConstraint('garage_id')
    )

    op.create_table('ai_usage',
        sa.Column('garage_id', sa.String(length=36), nullable=False),
        sa.Column('period', sa.String(length=7), nullable=False),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['garage_id'], ['garages.id'], ),
        sa.PrimaryKeyConstraint('garage_id', 'period')
    )
    op.create_index('idx_ai_usage_period', 'ai_usage', ['period'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_ai_usage_period', table_name='ai_usage')
    op.drop_table('ai_usage')
    op.drop_table('garage_settings')
    op.drop_table('garages')
