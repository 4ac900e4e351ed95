"""Initial courier schema: users, sessions, items and the item id sequence

Revision ID: c0u1r2i3e4r5
Revises:
Create Date: 2026-10-19

This migration adds:
1. users (username primary key, bcrypt hash, role, bounded balance, contact info)
2. user_sessions (at most one live session per username)
3. items (split sending/receiving date columns, receiving columns nullable)
4. item_sequences (store-level id allocator for items)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0u1r2i3e4r5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS TABLE
    # ==========================================================================
    op.create_table('users',
        sa.Column('username', sa.String(length=32), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_users_balance_non_negative'),
        sa.CheckConstraint("role IN ('CUSTOMER', 'ADMINISTRATOR')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('username')
    )

    # ==========================================================================
    # 2. USER SESSIONS TABLE
    # ==========================================================================
    op.create_table('user_sessions',
        sa.Column('username', sa.String(length=32), nullable=False),
        sa.Column('issuer', sa.String(length=64), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['username'], ['users.username'], ),
        sa.PrimaryKeyConstraint('username')
    )
    with op.batch_alter_table('user_sessions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_sessions_token_hash'), ['token_hash'], unique=True)

    # ==========================================================================
    # 3. ITEMS TABLE
    # ==========================================================================
    op.create_table('items',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('cost', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False),
        sa.Column('sending_year', sa.Integer(), nullable=False),
        sa.Column('sending_month', sa.Integer(), nullable=False),
        sa.Column('sending_day', sa.Integer(), nullable=False),
        sa.Column('receiving_year', sa.Integer(), nullable=True),
        sa.Column('receiving_month', sa.Integer(), nullable=True),
        sa.Column('receiving_day', sa.Integer(), nullable=True),
        sa.Column('src_username', sa.String(length=32), nullable=False),
        sa.Column('dst_username', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.CheckConstraint("state IN ('PENDING_RECEIVING', 'RECEIVED')", name='ck_items_state'),
        sa.ForeignKeyConstraint(['src_username'], ['users.username'], ),
        sa.ForeignKeyConstraint(['dst_username'], ['users.username'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('items', schema=None) as batch_op:
        batch_op.create_index('ix_items_src_username', ['src_username'], unique=False)
        batch_op.create_index('ix_items_dst_username', ['dst_username'], unique=False)

    # ==========================================================================
    # 4. ITEM SEQUENCES TABLE
    # ==========================================================================
    op.create_table('item_sequences',
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('next_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('name')
    )


def downgrade():
    op.drop_table('item_sequences')

    with op.batch_alter_table('items', schema=None) as batch_op:
        batch_op.drop_index('ix_items_dst_username')
        batch_op.drop_index('ix_items_src_username')
    op.drop_table('items')

    with op.batch_alter_table('user_sessions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_sessions_token_hash'))
    op.drop_table('user_sessions')

    op.drop_table('users')
