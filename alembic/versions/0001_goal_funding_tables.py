"""goal funding tables

Revision ID: 0001_goal_funding_tables
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_goal_funding_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=True),
    )

    op.create_table(
        'goals',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.Uuid(as_uuid=True), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('target_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('saved', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('locked_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('end_date', sa.DateTime, nullable=True),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('redeemed_at', sa.DateTime, nullable=True),
        sa.Column('delivery_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint('target_amount > 0', name='ck_goals_target_positive'),
        sa.CheckConstraint('saved >= 0', name='ck_goals_saved_non_negative'),
    )
    op.create_index('ix_goals_user_id', 'goals', ['user_id'])
    op.create_index('ix_goals_user_product_status', 'goals', ['user_id', 'product_id', 'status'])
    op.create_index(
        'uq_goals_one_draft_per_product',
        'goals',
        ['user_id', 'product_id'],
        unique=True,
        postgresql_where=sa.text("status = 'DRAFT'"),
        sqlite_where=sa.text("status = 'DRAFT'"),
    )

    op.create_table(
        'deposits',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('goal_id', sa.Uuid(as_uuid=True), sa.ForeignKey('goals.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='STRIPE'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='COMPLETED'),
        sa.Column('provider_reference', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint('amount > 0', name='ck_deposits_amount_positive'),
        sa.UniqueConstraint('goal_id', 'provider_reference', name='uq_deposits_goal_provider_reference'),
    )
    op.create_index('ix_deposits_goal_id', 'deposits', ['goal_id'])

    op.create_table(
        'price_locks',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('product_id', sa.Uuid(as_uuid=True), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('goal_id', sa.Uuid(as_uuid=True), sa.ForeignKey('goals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('store_id', sa.String(length=64), nullable=True),
        sa.Column('locked_by', sa.String(length=64), nullable=False),
        sa.Column('locked_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('original_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('expires_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('product_id', 'goal_id', name='uq_price_locks_product_goal'),
    )
    op.create_index('ix_price_locks_goal_id', 'price_locks', ['goal_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('goal_id', sa.Uuid(as_uuid=True), sa.ForeignKey('goals.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String, nullable=False),
        sa.Column('message', sa.String, nullable=False),
        sa.Column('type', sa.String, nullable=False),
        sa.Column('is_read', sa.Boolean, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade():
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_price_locks_goal_id', table_name='price_locks')
    op.drop_table('price_locks')
    op.drop_index('ix_deposits_goal_id', table_name='deposits')
    op.drop_table('deposits')
    op.drop_index('uq_goals_one_draft_per_product', table_name='goals')
    op.drop_index('ix_goals_user_product_status', table_name='goals')
    op.drop_index('ix_goals_user_id', table_name='goals')
    op.drop_table('goals')
    op.drop_table('products')
