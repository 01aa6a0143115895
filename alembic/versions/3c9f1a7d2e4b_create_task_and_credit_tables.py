"""create_task_and_credit_tables

    Revision ID: 3c9f1a7d2e4b
    Revises:
    Create Date: 2025-10-21 13:18:35.776981

    """
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c9f1a7d2e4b'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    """Users, API keys, task records and the credit ledger"""

    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('nickname', sa.String(255)),
        sa.Column('avatar_url', sa.String(1024)),
        sa.Column('signin_provider', sa.String(50)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'apikeys',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('api_key', sa.String(64), nullable=False),
        sa.Column('user_uuid', sa.String(36), nullable=False),
        sa.Column('title', sa.String(100)),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_apikeys_api_key', 'apikeys', ['api_key'], unique=True
    )
    op.create_index('ix_apikeys_user_uuid', 'apikeys', ['user_uuid'])

    # Task records
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('user_uuid', sa.String(36), nullable=False),
        sa.Column('task_type', sa.String(50), nullable=False),
        sa.Column('credits_consumed', sa.Integer(), nullable=False),
        sa.Column('credits_remaining', sa.Integer(), nullable=False),
        sa.Column('task_status', sa.String(20), nullable=False),
        sa.Column('external_task_id', sa.String(255)),
        sa.Column('external_provider', sa.String(50)),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_tasks_user_uuid', 'tasks', ['user_uuid'])
    op.create_index(
        'ix_tasks_external_task_id',
        'tasks',
        ['external_task_id'],
        unique=True
    )
    op.create_index(
        'idx_tasks_user_created',
        'tasks',
        ['user_uuid', 'created_at'],
        postgresql_using='btree'
    )

    # Reaper scans non-terminal tasks by age
    op.create_index(
        'idx_tasks_status_created',
        'tasks',
        ['task_status', 'created_at'],
        postgresql_using='btree'
    )

    # Credit ledger
    op.create_table(
        'credit_balances',
        sa.Column('user_uuid', sa.String(36), primary_key=True),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_balance_non_negative'),
    )

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('trans_no', sa.String(64), nullable=False, unique=True),
        sa.Column('user_uuid', sa.String(36), nullable=False),
        sa.Column('trans_type', sa.String(50), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(255)),
        sa.Column('task_id', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_credit_transactions_user_uuid',
        'credit_transactions',
        ['user_uuid']
    )
    op.create_index(
        'ix_credit_transactions_task_id',
        'credit_transactions',
        ['task_id']
    )

    op.create_table(
        'credit_usage_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('record_no', sa.String(255), nullable=False),
        sa.Column('user_uuid', sa.String(36), nullable=False),
        sa.Column('task_type', sa.String(50), nullable=False),
        sa.Column('task_description', sa.String(255)),
        sa.Column('credits_consumed', sa.Integer(), nullable=False),
        sa.Column('credits_remaining', sa.Integer(), nullable=False),
        sa.Column('task_status', sa.String(20), nullable=False),
        sa.Column('external_task_id', sa.String(255)),
        sa.Column('external_provider', sa.String(50)),
        sa.Column('task_input', sa.Text()),
        sa.Column('task_output', sa.Text()),
        sa.Column('error_message', sa.Text()),
        sa.Column('started_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_credit_usage_records_record_no',
        'credit_usage_records',
        ['record_no'],
        unique=True
    )
    op.create_index(
        'ix_credit_usage_records_user_uuid',
        'credit_usage_records',
        ['user_uuid']
    )
    op.create_index(
        'idx_usage_user_created',
        'credit_usage_records',
        ['user_uuid', 'created_at'],
        postgresql_using='btree'
    )


def downgrade():
    """Drop ledger, task and user tables"""

    op.drop_table('credit_usage_records')
    op.drop_table('credit_transactions')
    op.drop_table('credit_balances')
    op.drop_table('tasks')
    op.drop_table('apikeys')
    op.drop_table('users')
