"""create document pipeline tables

Revision ID: 3c7d2a91b0e4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c7d2a91b0e4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
	"""Upgrade schema."""
	op.create_table(
		'planning_documents',
		sa.Column('id', sa.String(length=36), nullable=False),
		sa.Column('job_id', sa.String(length=36), nullable=True),
		sa.Column('user_id', sa.String(length=64), nullable=False),
		sa.Column('site_id', sa.String(length=64), nullable=False),
		sa.Column('storage_path', sa.String(length=512), nullable=False),
		sa.Column('file_name', sa.String(length=255), nullable=False),
		sa.Column('summary_json', sa.JSON(), nullable=False),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index('ix_planning_documents_job_id', 'planning_documents', ['job_id'], unique=False)
	op.create_index('ix_planning_documents_user_id', 'planning_documents', ['user_id'], unique=False)
	op.create_index('ix_planning_documents_site_id', 'planning_documents', ['site_id'], unique=False)
	op.create_index('ix_planning_documents_created_at', 'planning_documents', ['created_at'], unique=False)

	op.create_table(
		'planning_document_analyses',
		sa.Column('id', sa.String(length=36), nullable=False),
		sa.Column('planning_document_id', sa.String(length=36), nullable=False),
		sa.Column('job_id', sa.String(length=36), nullable=True),
		sa.Column('user_id', sa.String(length=64), nullable=False),
		sa.Column('analysis_json', sa.JSON(), nullable=False),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
		sa.ForeignKeyConstraint(['planning_document_id'], ['planning_documents.id'], ondelete='CASCADE'),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index('ix_planning_document_analyses_planning_document_id', 'planning_document_analyses', ['planning_document_id'], unique=False)
	op.create_index('ix_planning_document_analyses_job_id', 'planning_document_analyses', ['job_id'], unique=False)
	op.create_index('ix_planning_document_analyses_user_id', 'planning_document_analyses', ['user_id'], unique=False)

	op.create_table(
		'document_jobs',
		sa.Column('id', sa.String(length=36), nullable=False),
		sa.Column('user_id', sa.String(length=64), nullable=False),
		sa.Column('site_id', sa.String(length=64), nullable=False),
		sa.Column('storage_path', sa.String(length=512), nullable=False),
		sa.Column('file_name', sa.String(length=255), nullable=False),
		sa.Column('file_size', sa.Integer(), nullable=False),
		sa.Column('mime_type', sa.String(length=128), nullable=False),
		sa.Column('focus', sa.String(length=32), nullable=True),
		sa.Column('status', sa.String(length=16), nullable=False),
		sa.Column('progress', sa.SmallInteger(), nullable=False),
		sa.Column('progress_message', sa.String(length=255), nullable=True),
		sa.Column('attempts', sa.Integer(), nullable=False),
		sa.Column('error_code', sa.String(length=64), nullable=True),
		sa.Column('error_message', sa.Text(), nullable=True),
		sa.Column('analysis_status', sa.String(length=16), nullable=False),
		sa.Column('analysis_error', sa.Text(), nullable=True),
		sa.Column('planning_document_id', sa.String(length=36), nullable=True),
		sa.Column('queue_message_id', sa.String(length=128), nullable=True),
		sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
		sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
		sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
		sa.ForeignKeyConstraint(['planning_document_id'], ['planning_documents.id'], ondelete='SET NULL'),
		sa.PrimaryKeyConstraint('id')
	)
	op.create_index('ix_document_jobs_user_id', 'document_jobs', ['user_id'], unique=False)
	op.create_index('ix_document_jobs_site_id', 'document_jobs', ['site_id'], unique=False)
	op.create_index('ix_document_jobs_status', 'document_jobs', ['status'], unique=False)
	op.create_index('ix_document_jobs_planning_document_id', 'document_jobs', ['planning_document_id'], unique=False)
	op.create_index('ix_document_jobs_status_updated_at', 'document_jobs', ['status', 'updated_at'], unique=False)
	op.create_index('ix_document_jobs_user_created_at', 'document_jobs', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
	"""Downgrade schema."""
	op.drop_index('ix_document_jobs_user_created_at', table_name='document_jobs')
	op.drop_index('ix_document_jobs_status_updated_at', table_name='document_jobs')
	op.drop_index('ix_document_jobs_planning_document_id', table_name='document_jobs')
	op.drop_index('ix_document_jobs_status', table_name='document_jobs')
	op.drop_index('ix_document_jobs_site_id', table_name='document_jobs')
	op.drop_index('ix_document_jobs_user_id', table_name='document_jobs')
	op.drop_table('document_jobs')
	op.drop_index('ix_planning_document_analyses_user_id', table_name='planning_document_analyses')
	op.drop_index('ix_planning_document_analyses_job_id', table_name='planning_document_analyses')
	op.drop_index('ix_planning_document_analyses_planning_document_id', table_name='planning_document_analyses')
	op.drop_table('planning_document_analyses')
	op.drop_index('ix_planning_documents_created_at', table_name='planning_documents')
	op.drop_index('ix_planning_documents_site_id', table_name='planning_documents')
	op.drop_index('ix_planning_documents_user_id', table_name='planning_documents')
	op.drop_index('ix_planning_documents_job_id', table_name='planning_documents')
	op.drop_table('planning_documents')
