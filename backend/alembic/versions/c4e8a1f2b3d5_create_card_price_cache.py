"""Create card_price_cache table

Revision ID: c4e8a1f2b3d5
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'c4e8a1f2b3d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # cards / card_sets / user_collections belong to the catalog and already exist
    op.create_table(
        'card_price_cache',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'card_id',
            sa.Integer(),
            sa.ForeignKey('cards.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('avg_price', sa.Numeric(10, 2), nullable=True),
        sa.Column(
            'recent_sales',
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default='{}',
        ),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_fetched', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        'ix_card_price_cache_card_id', 'card_price_cache', ['card_id'], unique=True
    )
    op.create_index(
        'ix_card_price_cache_last_fetched', 'card_price_cache', ['last_fetched']
    )


def downgrade() -> None:
    op.drop_index('ix_card_price_cache_last_fetched', table_name='card_price_cache')
    op.drop_index('ix_card_price_cache_card_id', table_name='card_price_cache')
    op.drop_table('card_price_cache')
