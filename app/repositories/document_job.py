"""Job Store repository: durable lifecycle records for uploaded documents."""

from datetime import datetime
from typing import Optional, Dict, Any, Iterable, List
from sqlalchemy import update, or_, and_, func, case
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.db.base_class import utcnow
from app.db.models.document_job import DocumentJob


class DocumentJobRepository(BaseRepository[DocumentJob]):
	"""Repository for DocumentJob entity operations."""

	def __init__(self, db: Session, correlation_id: Optional[str] = None):
		super().__init__(db, DocumentJob, correlation_id)

	def get_by_id_and_user(self, job_id: str, user_id: str) -> Optional[DocumentJob]:
		"""Get job by ID ensuring ownership by user."""
		result = self.db.query(self.model).filter(
			self.model.id == job_id,
			self.model.user_id == user_id,
		).first()
		self._log_operation("get_by_id_and_user", job_id=job_id, user_id=user_id, found=result is not None)
		return result

	def refresh_from_store(self, job_id: str) -> Optional[DocumentJob]:
		"""Re-read a job, bypassing objects cached in the session identity map."""
		self.db.expire_all()
		return self.get_by_id(job_id)

	def claim(
		self,
		job_id: str,
		stale_before: datetime,
		progress: int,
		progress_message: str,
	) -> bool:
		"""Atomically move a startable job to processing.

		A job is startable when it is queued, or when it is processing but has
		not been written since ``stale_before`` (its previous invocation was
		killed). Progress is never lowered by a re-claim.

		Returns:
			True if this call claimed the job, False otherwise.
		"""
		now = utcnow()
		stmt = (
			update(self.model)
			.where(
				self.model.id == job_id,
				or_(
					self.model.status == "queued",
					and_(self.model.status == "processing", self.model.updated_at < stale_before),
				),
			)
			.values(
				status="processing",
				attempts=self.model.attempts + 1,
				progress=case((self.model.progress < progress, progress), else_=self.model.progress),
				progress_message=progress_message,
				started_at=func.coalesce(self.model.started_at, now),
				updated_at=now,
			)
			.execution_options(synchronize_session=False)
		)
		result = self.db.execute(stmt)
		claimed = result.rowcount == 1
		self._log_operation("claim", job_id=job_id, claimed=claimed)
		return claimed

	def update_where_status(
		self,
		job_id: str,
		statuses: Iterable[str],
		fields: Dict[str, Any],
		updated_before: Optional[datetime] = None,
	) -> bool:
		"""Conditionally update a job only while it is in one of ``statuses``.

		When ``updated_before`` is given the job must also not have been
		written since then.
		"""
		values = dict(fields)
		values.setdefault("updated_at", utcnow())
		conditions = [self.model.id == job_id, self.model.status.in_(list(statuses))]
		if updated_before is not None:
			conditions.append(self.model.updated_at < updated_before)
		stmt = (
			update(self.model)
			.where(*conditions)
			.values(**values)
			.execution_options(synchronize_session=False)
		)
		result = self.db.execute(stmt)
		updated = result.rowcount == 1
		self._log_operation("update_where_status", job_id=job_id, fields=list(values.keys()), updated=updated)
		return updated

	def list_stale_processing(self, stale_before: datetime, limit: int = 100) -> List[DocumentJob]:
		result = self.db.query(self.model).filter(
			self.model.status == "processing",
			self.model.updated_at < stale_before,
		).order_by(self.model.updated_at).limit(limit).all()
		self._log_operation("list_stale_processing", count=len(result))
		return result

	def advance(self, job_id: str, progress: int, progress_message: str, fields: Optional[Dict[str, Any]] = None) -> bool:
		"""Write progress on a processing job without ever lowering it."""
		values = dict(fields or {})
		values["progress"] = case((self.model.progress < progress, progress), else_=self.model.progress)
		values["progress_message"] = progress_message
		return self.update_where_status(job_id, ["processing"], values)
