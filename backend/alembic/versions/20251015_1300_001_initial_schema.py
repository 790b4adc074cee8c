"""Initial schema - lojas, usuários, caixas, despesas e recebíveis

Revision ID: 001
Revises:
Create Date: 2025-10-15 13:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # === Lojas ===
    op.create_table(
        'stores',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # === Usuários ===
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('store_id', sa.String(36), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='vistoriador'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_store_id', 'users', ['store_id'], unique=False)
    op.create_index('ix_users_email_active', 'users', ['email', 'is_active'], unique=False)

    op.create_table(
        'user_sessions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('refresh_token_hash', sa.String(255), nullable=False),
        sa.Column('device_info', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('refresh_token_hash')
    )
    op.create_index('ix_user_sessions_user_id', 'user_sessions', ['user_id'], unique=False)
    op.create_index('ix_sessions_user_active', 'user_sessions', ['user_id', 'is_active'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('actor_user_id', sa.String(36), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'], unique=False)
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'], unique=False)
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'], unique=False)
    op.create_index('ix_audit_actor_created', 'audit_logs', ['actor_user_id', 'created_at'], unique=False)

    # === Catálogo de serviços ===
    op.create_table(
        'service_types',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('code', sa.String(60), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('default_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('counts_in_gross', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('default_price_cents >= 0', name='ck_service_types_price_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_service_types_code', 'service_types', ['code'], unique=True)

    # === Caixas ===
    op.create_table(
        'cash_boxes',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('store_id', sa.String(36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('vistoriador_id', sa.String(36), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vistoriador_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'date', 'vistoriador_id', name='uq_cash_boxes_store_date_owner')
    )
    op.create_index('ix_cash_boxes_store_id', 'cash_boxes', ['store_id'], unique=False)
    op.create_index('ix_cash_boxes_vistoriador_id', 'cash_boxes', ['vistoriador_id'], unique=False)
    op.create_index('ix_cash_boxes_store_date', 'cash_boxes', ['store_id', 'date'], unique=False)

    op.create_table(
        'cash_box_services',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('cash_box_id', sa.String(36), nullable=False),
        sa.Column('service_type_id', sa.String(36), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['cash_box_id'], ['cash_boxes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['service_type_id'], ['service_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cash_box_services_cash_box_id', 'cash_box_services', ['cash_box_id'], unique=False)

    op.create_table(
        'cash_box_electronic_entries',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('cash_box_id', sa.String(36), nullable=False),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['cash_box_id'], ['cash_boxes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cash_box_id', 'method', name='uq_electronic_entries_box_method')
    )
    op.create_index(
        'ix_cash_box_electronic_entries_cash_box_id', 'cash_box_electronic_entries', ['cash_box_id'], unique=False
    )

    op.create_table(
        'cash_box_expenses',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('cash_box_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['cash_box_id'], ['cash_boxes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cash_box_expenses_cash_box_id', 'cash_box_expenses', ['cash_box_id'], unique=False)

    # === Despesas mensais ===
    op.create_table(
        'monthly_expenses',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('store_id', sa.String(36), nullable=False),
        sa.Column('month_year', sa.Date(), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source', sa.String(10), nullable=False, server_default='fixa'),
        sa.Column('created_by_user_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_monthly_expenses_store_month', 'monthly_expenses', ['store_id', 'month_year'], unique=False)

    # === Recebíveis ===
    op.create_table(
        'receivables',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('store_id', sa.String(36), nullable=False),
        sa.Column('created_by_user_id', sa.String(36), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('plate', sa.String(20), nullable=True),
        sa.Column('service_type_id', sa.String(36), nullable=True),
        sa.Column('original_amount_cents', sa.Integer(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='aberto'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['service_type_id'], ['service_types.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_receivables_store_status', 'receivables', ['store_id', 'status'], unique=False)

    op.create_table(
        'receivable_payments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('receivable_id', sa.String(36), nullable=False),
        sa.Column('paid_on', sa.Date(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(10), nullable=True),
        sa.Column('recorded_by_user_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['receivable_id'], ['receivables.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recorded_by_user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_receivable_payments_receivable_id', 'receivable_payments', ['receivable_id'], unique=False)

    # === Catálogo inicial ===
    service_types = sa.table(
        'service_types',
        sa.column('id', sa.String),
        sa.column('code', sa.String),
        sa.column('name', sa.String),
        sa.column('default_price_cents', sa.Integer),
        sa.column('counts_in_gross', sa.Boolean),
    )
    op.bulk_insert(service_types, [
        {'id': '5c1f0a4e-0001-4000-8000-000000000001', 'code': 'CARRO', 'name': 'Carro', 'default_price_cents': 12000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000002', 'code': 'MOTO', 'name': 'Moto', 'default_price_cents': 10000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000003', 'code': 'CAMINHONETE', 'name': 'Caminhonete', 'default_price_cents': 14000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000004', 'code': 'CAMINHAO', 'name': 'Caminhão', 'default_price_cents': 18000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000005', 'code': 'PESQUISA', 'name': 'Pesquisa', 'default_price_cents': 0, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000006', 'code': 'CAUTELAR_CARRO', 'name': 'Cautelar Carro', 'default_price_cents': 22000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000007', 'code': 'CAUTELAR_MOTO', 'name': 'Cautelar Moto', 'default_price_cents': 16000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000008', 'code': 'CAUTELAR_CAMINHAO_CAMINHONETE', 'name': 'Cautelar Caminhão/Caminhonete', 'default_price_cents': 24000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-000000000009', 'code': 'REVISTORIA_MULTA', 'name': 'Revistoria Multa', 'default_price_cents': 20000, 'counts_in_gross': True},
        {'id': '5c1f0a4e-0001-4000-8000-00000000000a', 'code': 'REV_RETORNO', 'name': 'Revistoria Retorno', 'default_price_cents': 0, 'counts_in_gross': False},
    ])


def downgrade() -> None:
    op.drop_table('receivable_payments')
    op.drop_table('receivables')
    op.drop_table('monthly_expenses')
    op.drop_table('cash_box_expenses')
    op.drop_table('cash_box_electronic_entries')
    op.drop_table('cash_box_services')
    op.drop_table('cash_boxes')
    op.drop_table('service_types')
    op.drop_table('audit_logs')
    op.drop_table('user_sessions')
    op.drop_table('users')
    op.drop_table('stores')
