"""Planning document analysis (risk artifact) repository."""

from typing import Optional
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.db.models.planning_document_analysis import PlanningDocumentAnalysis


class PlanningDocumentAnalysisRepository(BaseRepository[PlanningDocumentAnalysis]):

	def __init__(self, db: Session, correlation_id: Optional[str] = None):
		super().__init__(db, PlanningDocumentAnalysis, correlation_id)

	def get_latest_for_document(self, planning_document_id: str) -> Optional[PlanningDocumentAnalysis]:
		result = self.db.query(self.model).filter(
			self.model.planning_document_id == planning_document_id,
		).order_by(self.model.created_at.desc()).first()
		self._log_operation("get_latest_for_document", planning_document_id=planning_document_id, found=result is not None)
		return result
