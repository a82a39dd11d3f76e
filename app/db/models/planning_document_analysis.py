from sqlalchemy import Column, ForeignKey, String, JSON, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base_class import Base, new_uuid, utcnow


class PlanningDocumentAnalysis(Base):
	__tablename__ = "planning_document_analyses"

	id = Column(String(36), primary_key=True, default=new_uuid)
	planning_document_id = Column(String(36), ForeignKey("planning_documents.id", ondelete="CASCADE"), nullable=False, index=True)
	job_id = Column(String(36), nullable=True, index=True)
	user_id = Column(String(64), nullable=False, index=True)
	analysis_json = Column(JSON, nullable=False)
	created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

	planning_document = relationship("PlanningDocument", back_populates="analyses")
