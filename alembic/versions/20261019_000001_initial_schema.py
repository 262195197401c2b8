"""Initial schema: users, wallets, ledger, activations, referral income,
withdrawals, transfers, renewals, admin config and audit log

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.DECIMAL(18, 8)
PERCENT = sa.DECIMAL(7, 4)
JSON_DOC = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uid', sa.String(128), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=True),
        sa.Column('program_type', sa.String(20), nullable=False, server_default='investor'),
        sa.Column('status', sa.String(32), nullable=False, server_default='PENDING_ACTIVATION'),
        _ts('activation_window_started_at'),
        sa.Column('activation_amount', MONEY, nullable=True),
        _ts('activation_date', nullable=True),
        sa.Column('active_plan_id', sa.String(64), nullable=True),
        _ts('blocked_at', nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('kyc_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('bank_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('withdrawal_blocked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('cap_base_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('earnings_cap', MONEY, nullable=False, server_default='0'),
        sa.Column('cumulative_earnings', MONEY, nullable=False, server_default='0'),
        sa.Column('over_cap_earnings', MONEY, nullable=False, server_default='0'),
        sa.Column('cap_status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('cap_cycle', sa.Integer(), nullable=False, server_default='1'),
        _ts('cap_reached_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('cumulative_earnings >= 0', name='ck_users_cumulative_earnings_non_negative'),
        sa.CheckConstraint('over_cap_earnings >= 0', name='ck_users_over_cap_earnings_non_negative'),
        sa.CheckConstraint('earnings_cap >= 0', name='ck_users_earnings_cap_non_negative'),
        sa.CheckConstraint('referrer_id IS NULL OR referrer_id <> id', name='ck_users_not_own_referrer'),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='SET NULL', name='fk_users_referrer_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_uid', 'users', ['uid'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referrer_id', 'users', ['referrer_id'])
    op.create_index('ix_users_status', 'users', ['status'])
    op.create_index('idx_users_status_window', 'users', ['status', 'activation_window_started_at'])

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('available_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_credited', MONEY, nullable=False, server_default='0'),
        sa.Column('total_debited', MONEY, nullable=False, server_default='0'),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('available_balance >= 0', name='ck_wallets_available_balance_non_negative'),
        sa.CheckConstraint('total_credited >= 0', name='ck_wallets_total_credited_non_negative'),
        sa.CheckConstraint('total_debited >= 0', name='ck_wallets_total_debited_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='fk_wallets_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_wallets'),
        sa.UniqueConstraint('user_id', name='uq_wallets_user_id'),
    )

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('source_type', sa.String(40), nullable=False),
        sa.Column('source_id', sa.String(128), nullable=False),
        sa.Column('income_type', sa.String(40), nullable=True),
        sa.Column('balance_after', MONEY, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('meta', JSON_DOC, nullable=True),
        _ts('created_at'),
        sa.CheckConstraint('amount > 0', name='ck_ledger_entries_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='fk_ledger_entries_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_ledger_entries'),
        sa.UniqueConstraint('user_id', 'direction', 'source_type', 'source_id', name='uq_ledger_entries_source'),
    )
    op.create_index('ix_ledger_entries_user_id', 'ledger_entries', ['user_id'])
    op.create_index('idx_ledger_user_created', 'ledger_entries', ['user_id', 'created_at'])

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('plan_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('program_type', sa.String(20), nullable=False, server_default='investor'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _ts('created_at'),
        sa.CheckConstraint('amount > 0', name='ck_packages_amount_positive'),
        sa.PrimaryKeyConstraint('id', name='pk_packages'),
    )
    op.create_index('ix_packages_plan_id', 'packages', ['plan_id'], unique=True)

    op.create_table(
        'activations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('plan_id', sa.String(64), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('program_type', sa.String(20), nullable=False),
        sa.Column('source', sa.String(32), nullable=False, server_default='payment_gateway'),
        sa.Column('sponsor_id', sa.Integer(), nullable=True),
        sa.Column('payment_reference', sa.String(128), nullable=True),
        _ts('activated_at'),
        sa.Column('referral_processed', sa.Boolean(), nullable=False, server_default='false'),
        _ts('referral_processed_at', nullable=True),
        sa.Column('referral_last_error', sa.Text(), nullable=True),
        sa.Column('roi_days_paid', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('roi_completed', sa.Boolean(), nullable=False, server_default='false'),
        _ts('created_at'),
        sa.CheckConstraint('amount > 0', name='ck_activations_amount_positive'),
        sa.CheckConstraint('roi_days_paid >= 0', name='ck_activations_roi_days_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='fk_activations_user_id_users'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='SET NULL', name='fk_activations_package_id_packages'),
        sa.ForeignKeyConstraint(['sponsor_id'], ['users.id'], ondelete='SET NULL', name='fk_activations_sponsor_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_activations'),
        sa.UniqueConstraint('payment_reference', name='uq_activations_payment_reference'),
    )
    op.create_index('ix_activations_user_id', 'activations', ['user_id'])
    op.create_index('ix_activations_sponsor_id', 'activations', ['sponsor_id'])
    op.create_index('idx_activations_pending_referral', 'activations', ['referral_processed', 'id'])

    op.create_table(
        'referral_income_distributions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('activation_id', sa.Integer(), nullable=False),
        sa.Column('beneficiary_id', sa.Integer(), nullable=False),
        sa.Column('source_user_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('income_type', sa.String(40), nullable=False),
        sa.Column('percent', PERCENT, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('skip_reason', sa.String(64), nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), nullable=True),
        _ts('created_at'),
        sa.CheckConstraint('level >= 1', name='ck_referral_income_distributions_level_positive'),
        sa.CheckConstraint('amount >= 0', name='ck_referral_income_distributions_amount_non_negative'),
        sa.ForeignKeyConstraint(['activation_id'], ['activations.id'], ondelete='CASCADE', name='fk_referral_income_distributions_activation_id_activations'),
        sa.ForeignKeyConstraint(['beneficiary_id'], ['users.id'], ondelete='CASCADE', name='fk_referral_income_distributions_beneficiary_id_users'),
        sa.ForeignKeyConstraint(['source_user_id'], ['users.id'], ondelete='CASCADE', name='fk_referral_income_distributions_source_user_id_users'),
        sa.ForeignKeyConstraint(['ledger_entry_id'], ['ledger_entries.id'], ondelete='SET NULL', name='fk_referral_income_distributions_ledger_entry_id_ledger_entries'),
        sa.PrimaryKeyConstraint('id', name='pk_referral_income_distributions'),
        sa.UniqueConstraint('activation_id', 'beneficiary_id', 'level', name='uq_referral_distribution_triple'),
    )
    op.create_index('ix_referral_income_distributions_activation_id', 'referral_income_distributions', ['activation_id'])
    op.create_index('ix_referral_income_distributions_beneficiary_id', 'referral_income_distributions', ['beneficiary_id'])

    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('fee', MONEY, nullable=False),
        sa.Column('net_amount', MONEY, nullable=False),
        sa.Column('fee_type', sa.String(10), nullable=False),
        sa.Column('method', sa.String(32), nullable=False),
        sa.Column('payout_details', JSON_DOC, nullable=True),
        sa.Column('origin', sa.String(20), nullable=False, server_default='user'),
        sa.Column('status', sa.String(20), nullable=False, server_default='requested'),
        sa.Column('admin_note', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        sa.Column('payout_reference', sa.String(128), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('amount > 0', name='ck_withdrawal_requests_amount_positive'),
        sa.CheckConstraint('fee >= 0', name='ck_withdrawal_requests_fee_non_negative'),
        sa.CheckConstraint('net_amount > 0', name='ck_withdrawal_requests_net_amount_positive'),
        sa.CheckConstraint('net_amount + fee = amount', name='ck_withdrawal_requests_gross_equals_net_plus_fee'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='fk_withdrawal_requests_user_id_users'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL', name='fk_withdrawal_requests_reviewed_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_withdrawal_requests'),
    )
    op.create_index('ix_withdrawal_requests_user_id', 'withdrawal_requests', ['user_id'])
    op.create_index('idx_withdrawals_user_status', 'withdrawal_requests', ['user_id', 'status'])
    op.create_index('idx_withdrawals_user_created', 'withdrawal_requests', ['user_id', 'created_at'])

    op.create_table(
        'user_transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sender_id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('fee', MONEY, nullable=False),
        sa.Column('net_amount', MONEY, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        _ts('created_at'),
        sa.CheckConstraint('amount > 0', name='ck_user_transfers_amount_positive'),
        sa.CheckConstraint('fee >= 0', name='ck_user_transfers_fee_non_negative'),
        sa.CheckConstraint('net_amount + fee = amount', name='ck_user_transfers_amount_equals_net_plus_fee'),
        sa.CheckConstraint('sender_id <> recipient_id', name='ck_user_transfers_not_self_transfer'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE', name='fk_user_transfers_sender_id_users'),
        sa.ForeignKeyConstraint(['recipient_id'], ['users.id'], ondelete='CASCADE', name='fk_user_transfers_recipient_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_user_transfers'),
    )
    op.create_index('ix_user_transfers_recipient_id', 'user_transfers', ['recipient_id'])
    op.create_index('idx_transfers_sender_created', 'user_transfers', ['sender_id', 'created_at'])

    op.create_table(
        'renewals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('cap_cycle', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(32), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='requested'),
        sa.Column('base_amount', MONEY, nullable=True),
        sa.Column('new_cap', MONEY, nullable=True),
        sa.Column('fee', MONEY, nullable=False, server_default='0'),
        sa.Column('plan_id', sa.String(64), nullable=True),
        sa.Column('funded_by_id', sa.Integer(), nullable=True),
        sa.Column('payment_reference', sa.String(128), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('completed_at', nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='fk_renewals_user_id_users'),
        sa.ForeignKeyConstraint(['funded_by_id'], ['users.id'], ondelete='SET NULL', name='fk_renewals_funded_by_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_renewals'),
        sa.UniqueConstraint('user_id', 'cap_cycle', name='uq_renewals_user_cycle'),
        sa.UniqueConstraint('payment_reference', name='uq_renewals_payment_reference'),
    )
    op.create_index('ix_renewals_user_id', 'renewals', ['user_id'])

    op.create_table(
        'admin_config_documents',
        sa.Column('key', sa.String(64), nullable=False),
        sa.Column('data', JSON_DOC, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        _ts('updated_at'),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ondelete='SET NULL', name='fk_admin_config_documents_updated_by_users'),
        sa.PrimaryKeyConstraint('key', name='pk_admin_config_documents'),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=True),
        sa.Column('details', JSON_DOC, nullable=True),
        _ts('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL', name='fk_audit_logs_user_id_users'),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id'], ondelete='SET NULL', name='fk_audit_logs_performed_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('idx_audit_logs_action_created', 'audit_logs', ['action', 'created_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('admin_config_documents')
    op.drop_table('renewals')
    op.drop_table('user_transfers')
    op.drop_table('withdrawal_requests')
    op.drop_table('referral_income_distributions')
    op.drop_table('activations')
    op.drop_table('packages')
    op.drop_table('ledger_entries')
    op.drop_table('wallets')
    op.drop_table('users')
