from sqlalchemy import Column, ForeignKey, Integer, String, Text, SmallInteger, DateTime, Index
from sqlalchemy.orm import relationship
from app.db.base_class import TimestampMixin, Base, new_uuid


class DocumentJob(Base, TimestampMixin):
	__tablename__ = "document_jobs"

	id = Column(String(36), primary_key=True, default=new_uuid)
	user_id = Column(String(64), nullable=False, index=True)
	site_id = Column(String(64), nullable=False, index=True)
	storage_path = Column(String(512), nullable=False)
	file_name = Column(String(255), nullable=False)
	file_size = Column(Integer, nullable=False, default=0)
	mime_type = Column(String(128), nullable=False)
	focus = Column(String(32), nullable=True)

	status = Column(String(16), nullable=False, index=True)  # queued, processing, completed, failed
	progress = Column(SmallInteger, nullable=False, default=0)
	progress_message = Column(String(255), nullable=True)
	attempts = Column(Integer, nullable=False, default=0)
	error_code = Column(String(64), nullable=True)
	error_message = Column(Text, nullable=True)

	analysis_status = Column(String(16), nullable=False, default="pending")  # pending, ready, error
	analysis_error = Column(Text, nullable=True)

	planning_document_id = Column(String(36), ForeignKey("planning_documents.id", ondelete="SET NULL"), nullable=True, index=True)
	queue_message_id = Column(String(128), nullable=True)

	started_at = Column(DateTime(timezone=True), nullable=True)
	completed_at = Column(DateTime(timezone=True), nullable=True)

	planning_document = relationship("PlanningDocument", foreign_keys=[planning_document_id])

	__table_args__ = (
		Index("ix_document_jobs_status_updated_at", "status", "updated_at"),
		Index("ix_document_jobs_user_created_at", "user_id", "created_at"),
	)
