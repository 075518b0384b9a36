"""Initial schema: users, transactions, bots, referral bonuses, deposit addresses"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b3c5d7e9f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=50), nullable=True),
        sa.Column('currency', sa.String(length=10), nullable=False, server_default='KSH'),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False, server_default=sa.text('0')),
        sa.Column('profit', sa.Numeric(precision=15, scale=2), nullable=False, server_default=sa.text('0')),
        sa.Column('active_bots', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('referrals', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('referral_code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('referred_by', sa.String(length=20), nullable=True),
        sa.Column('profile_image', sa.Text(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='user'),
        sa.Column('phone_verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_user_referral_code', 'users', ['referral_code'])
    op.create_index('ix_users_referred_by', 'users', ['referred_by'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('tx_hash', sa.Text(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('network', sa.Text(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('idx_transaction_user_type_status', 'transactions', ['user_id', 'type', 'status'])
    op.create_index('idx_transaction_created', 'transactions', ['created_at'])

    op.create_table(
        'bot_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('investment', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('daily_profit', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('total_profit', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'trading_bots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('bot_templates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('investment', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('daily_profit', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('total_profit', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_mining_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_trading_bots_user_id', 'trading_bots', ['user_id'])
    op.create_index('idx_bot_user_status', 'trading_bots', ['user_id', 'status'])

    op.create_table(
        'referral_bonuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('referrer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('referred_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('referred_id', name='uq_referral_bonus_referred'),
    )
    op.create_index('ix_referral_bonuses_referrer_id', 'referral_bonuses', ['referrer_id'])

    op.create_table(
        'deposit_addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('coin', sa.String(length=20), nullable=False),
        sa.Column('network', sa.String(length=20), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('coin', 'network', name='uq_deposit_address_coin_network'),
    )


def downgrade():
    op.drop_table('deposit_addresses')
    op.drop_index('ix_referral_bonuses_referrer_id', table_name='referral_bonuses')
    op.drop_table('referral_bonuses')
    op.drop_index('idx_bot_user_status', table_name='trading_bots')
    op.drop_index('ix_trading_bots_user_id', table_name='trading_bots')
    op.drop_table('trading_bots')
    op.drop_table('bot_templates')
    op.drop_index('idx_transaction_created', table_name='transactions')
    op.drop_index('idx_transaction_user_type_status', table_name='transactions')
    op.drop_index('ix_transactions_user_id', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_referred_by', table_name='users')
    op.drop_index('idx_user_referral_code', table_name='users')
    op.drop_table('users')
