"""Planning document (summary artifact) repository."""

from typing import Optional, List
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.db.models.planning_document import PlanningDocument


class PlanningDocumentRepository(BaseRepository[PlanningDocument]):
	"""Append-only access to summary artifacts."""

	def __init__(self, db: Session, correlation_id: Optional[str] = None):
		super().__init__(db, PlanningDocument, correlation_id)

	def get_by_id_and_user(self, document_id: str, user_id: str) -> Optional[PlanningDocument]:
		result = self.db.query(self.model).filter(
			self.model.id == document_id,
			self.model.user_id == user_id,
		).first()
		self._log_operation("get_by_id_and_user", document_id=document_id, user_id=user_id, found=result is not None)
		return result

	def list_for_site(self, site_id: str, user_id: str, skip: int = 0, limit: int = 100) -> List[PlanningDocument]:
		"""Documents for a site, newest first."""
		results = self.db.query(self.model).filter(
			self.model.site_id == site_id,
			self.model.user_id == user_id,
		).order_by(self.model.created_at.desc()).offset(skip).limit(limit).all()
		self._log_operation("list_for_site", site_id=site_id, count=len(results))
		return results

	def list_for_comparison(
		self,
		user_id: str,
		site_id: Optional[str] = None,
		document_ids: Optional[List[str]] = None,
		limit: int = 50,
	) -> List[PlanningDocument]:
		"""Owned documents narrowed by site and/or explicit ids, newest first."""
		query = self.db.query(self.model).filter(self.model.user_id == user_id)
		if site_id:
			query = query.filter(self.model.site_id == site_id)
		if document_ids is not None:
			query = query.filter(self.model.id.in_(document_ids))
		results = query.order_by(self.model.created_at.desc()).limit(limit).all()
		self._log_operation("list_for_comparison", site_id=site_id, requested=len(document_ids or []), count=len(results))
		return results
