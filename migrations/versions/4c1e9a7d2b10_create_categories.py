"""Create categories table with cached depth

Revision ID: 4c1e9a7d2b10
Revises: 
Create Date: 2026-10-19 10:12:44.118302

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a7d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('hex_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('depth', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('depth >= 0', name='ck_categories_depth_non_negative'),
        sa.CheckConstraint('parent_id IS NULL OR parent_id <> id', name='ck_categories_not_own_parent'),
        sa.ForeignKeyConstraint(['parent_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_categories_hex_id', 'categories', ['hex_id'], unique=True)
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'], unique=False)
    op.create_index('ix_categories_depth_name', 'categories', ['depth', 'name'], unique=False)


def downgrade():
    op.drop_index('ix_categories_depth_name', table_name='categories')
    op.drop_index('ix_categories_parent_id', table_name='categories')
    op.drop_index('ix_categories_slug', table_name='categories')
    op.drop_index('ix_categories_hex_id', table_name='categories')
    op.drop_table('categories')
