"""create request logs table

Inbound callbacks and outbound provider calls, linked to the pipeline job
they served.

Revision ID: 5e9b0d7a1c22
Revises: 3c7d2a91b0e4
Create Date: 2026-10-19 09:05:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e9b0d7a1c22'
down_revision: Union[str, Sequence[str], None] = '3c7d2a91b0e4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INDEXES = {
	'ix_request_logs_created_at': ['created_at'],
	'ix_request_logs_correlation_id': ['correlation_id'],
	'ix_request_logs_path_template': ['path_template'],
	'ix_request_logs_status_code': ['status_code'],
	'ix_request_logs_user_id': ['user_id'],
	'ix_request_logs_job_id': ['job_id'],
	'ix_request_logs_provider': ['provider'],
	'ix_request_logs_target': ['target'],
}


def upgrade() -> None:
	"""Upgrade schema."""
	op.create_table(
		'request_logs',
		sa.Column('id', sa.Integer(), nullable=False),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
		sa.Column('correlation_id', sa.String(length=64), nullable=False),
		sa.Column('direction', sa.String(length=16), nullable=False),
		sa.Column('connection_type', sa.String(length=16), nullable=True),
		sa.Column('method', sa.String(length=16), nullable=True),
		sa.Column('path_template', sa.String(length=512), nullable=True),
		sa.Column('raw_path', sa.String(length=512), nullable=True),
		sa.Column('route_name', sa.String(length=128), nullable=True),
		sa.Column('status_code', sa.Integer(), nullable=True),
		sa.Column('duration_ms', sa.Integer(), nullable=False),
		sa.Column('client_ip', sa.String(length=64), nullable=True),
		sa.Column('user_agent', sa.String(length=256), nullable=True),
		sa.Column('auth_type', sa.String(length=16), nullable=True),
		sa.Column('user_id', sa.String(length=64), nullable=True),
		sa.Column('job_id', sa.String(length=36), nullable=True),
		sa.Column('provider', sa.String(length=64), nullable=True),
		sa.Column('target', sa.String(length=256), nullable=True),
		sa.Column('error_code', sa.String(length=64), nullable=True),
		sa.PrimaryKeyConstraint('id')
	)
	for name, columns in INDEXES.items():
		op.create_index(name, 'request_logs', columns, unique=False)


def downgrade() -> None:
	"""Downgrade schema."""
	for name in reversed(list(INDEXES)):
		op.drop_index(name, table_name='request_logs')
	op.drop_table('request_logs')
