from sqlalchemy import Column, String, JSON, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base_class import Base, new_uuid, utcnow


class PlanningDocument(Base):
	"""Summary artifact. Rows are append-only; a re-run inserts a new row."""

	__tablename__ = "planning_documents"

	id = Column(String(36), primary_key=True, default=new_uuid)
	job_id = Column(String(36), nullable=True, index=True)
	user_id = Column(String(64), nullable=False, index=True)
	site_id = Column(String(64), nullable=False, index=True)
	storage_path = Column(String(512), nullable=False)
	file_name = Column(String(255), nullable=False)
	summary_json = Column(JSON, nullable=False)
	created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

	analyses = relationship("PlanningDocumentAnalysis", back_populates="planning_document", order_by="PlanningDocumentAnalysis.created_at")
