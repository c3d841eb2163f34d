"""create_purchases

Revision ID: 7c1d2e9a4b10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c1d2e9a4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('purchases',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('order_id', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('story_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('gateway_status', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
        sa.CheckConstraint("status IN ('PENDING', 'SUCCESS', 'FAILED')", name='ck_purchases_status'),
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_story_id', 'purchases', ['story_id'])
    op.create_index('ix_purchases_user_status', 'purchases', ['user_id', 'status'])
    op.create_index(
        'uq_purchases_active_user_story', 'purchases', ['user_id', 'story_id'],
        unique=True, postgresql_where=sa.text("status IN ('PENDING', 'SUCCESS')"),
    )


def downgrade() -> None:
    op.drop_index('uq_purchases_active_user_story', table_name='purchases')
    op.drop_index('ix_purchases_user_status', table_name='purchases')
    op.drop_index('ix_purchases_story_id', table_name='purchases')
    op.drop_index('ix_purchases_user_id', table_name='purchases')
    op.drop_table('purchases')
