"""initial schema - delivery records and send jobs

Revision ID: 001
Revises:
Create Date: 2026-10-16 09:00:00.000000

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
    # Create delivery_records table (state as VARCHAR, not enum)
    op.create_table(
        'delivery_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_kind', sa.String(64), nullable=False, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('target_url', sa.Text(), nullable=False),
        sa.Column('state', sa.String(9), nullable=False, index=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('last_http_status', sa.Integer(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_response', sa.Text(), nullable=True),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_delivery_records_state_created', 'delivery_records', ['state', 'created_at'])

    # Create send_jobs table
    op.create_table(
        'send_jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('target', sa.String(255), nullable=False, index=True),
        sa.Column('body', sa.JSON(), nullable=False),
        sa.Column('not_before', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sequence', sa.BigInteger(), nullable=False),
        sa.Column('state', sa.String(9), nullable=False, index=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('message_handle', sa.String(255), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )


def downgrade() -> None:
    op.drop_table('send_jobs')
    op.drop_index('ix_delivery_records_state_created', table_name='delivery_records')
    op.drop_table('delivery_records')
