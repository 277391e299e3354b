"""create_customers_table

Revision ID: 5a1e0c3b9d27
Revises:
Create Date: 2026-10-19 10:04:12.118204

"""
from alembic import op
import sqlalchemy as sa


revision = '5a1e0c3b9d27'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('address', sa.JSON(), nullable=False),
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])
    op.create_index('ix_customers_created_at_id', 'customers', ['created_at', 'id'])


def downgrade() -> None:
    op.drop_index('ix_customers_created_at_id', table_name='customers')
    op.drop_index('ix_customers_name', table_name='customers')
    op.drop_table('customers')
