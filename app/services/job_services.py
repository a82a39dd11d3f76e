from __future__ import annotations

from datetime import timedelta
from typing import Optional, List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base_class import utcnow
from app.services.base import BaseService
from app.services.exceptions import InvalidJobTransitionError, JobNotFoundError
from app.repositories.document_job import DocumentJobRepository
from app.db.models.document_job import DocumentJob
from app.schemas.job import ALLOWED_STATUS_TRANSITIONS, JobStatus, AnalysisStatus, ProcessingFocus


QUEUED_MESSAGE = "Queued for processing"
FAILED_MESSAGE = "Processing failed"

_ACTIVE = [JobStatus.QUEUED.value, JobStatus.PROCESSING.value]


def _sources(target: JobStatus) -> List[str]:
	return [s.value for s, allowed in ALLOWED_STATUS_TRANSITIONS.items() if target in allowed]


class DocumentJobService(BaseService):
	"""Owns every write to the Job Store.

	Each transition is a conditional update keyed on the current status, so a
	second invocation of the pipeline can never move a job backwards.
	"""

	def __init__(self, job_repo: DocumentJobRepository, correlation_id: Optional[str] = None):
		super().__init__(correlation_id)
		self._set_repositories(job_repo=job_repo)

	def create_job(
		self,
		*,
		user_id: str,
		site_id: str,
		storage_path: str,
		file_name: str,
		file_size: int,
		mime_type: str,
		focus: Optional[ProcessingFocus],
		db: Session,
	) -> DocumentJob:
		def op():
			return self.job_repo.create({
				"user_id": user_id,
				"site_id": site_id,
				"storage_path": storage_path,
				"file_name": file_name,
				"file_size": file_size,
				"mime_type": mime_type,
				"focus": focus.value if focus else None,
				"status": JobStatus.QUEUED.value,
				"progress": 0,
				"progress_message": QUEUED_MESSAGE,
				"attempts": 0,
				"analysis_status": AnalysisStatus.PENDING.value,
			})
		job = self.run_in_transaction(db, op)
		self.log_operation("create_job", job_id=job.id, site_id=site_id, mime_type=mime_type)
		return job

	def get(self, job_id: str) -> Optional[DocumentJob]:
		return self.job_repo.refresh_from_store(job_id)

	def claim(self, job_id: str, progress: int, message: str, db: Session) -> bool:
		"""Take ownership of a queued (or abandoned) job for this invocation."""
		stale_before = utcnow() - timedelta(minutes=settings.STALE_JOB_MINUTES)
		claimed = self.run_in_transaction(db, lambda: self.job_repo.claim(job_id, stale_before, progress, message))
		self.log_operation("claim", job_id=job_id, claimed=claimed)
		return claimed

	def advance(self, job_id: str, progress: int, message: str, db: Session) -> bool:
		clamped = max(0, min(100, progress))
		return self.run_in_transaction(db, lambda: self.job_repo.advance(job_id, clamped, message))

	def link_summary(self, job_id: str, planning_document_id: str, progress: int, message: str, db: Session) -> bool:
		return self.run_in_transaction(
			db,
			lambda: self.job_repo.advance(
				job_id, progress, message, {"planning_document_id": planning_document_id}
			),
		)

	def mark_analysis(self, job_id: str, status: AnalysisStatus, db: Session, error: Optional[str] = None) -> bool:
		fields = {"analysis_status": status.value, "analysis_error": error}
		updated = self.run_in_transaction(db, lambda: self.job_repo.update_where_status(job_id, _ACTIVE, fields))
		self.log_operation("mark_analysis", job_id=job_id, analysis_status=status.value)
		return updated

	def complete(self, job_id: str, message: str, db: Session) -> bool:
		job = self.job_repo.refresh_from_store(job_id)
		if job is None:
			raise JobNotFoundError(job_id, correlation_id=self.correlation_id)
		if not job.planning_document_id:
			raise InvalidJobTransitionError(job_id, job.status, JobStatus.COMPLETED.value, self.correlation_id)

		fields = {
			"status": JobStatus.COMPLETED.value,
			"progress": 100,
			"progress_message": message,
			"error_code": None,
			"error_message": None,
			"completed_at": utcnow(),
		}
		updated = self.run_in_transaction(
			db, lambda: self.job_repo.update_where_status(job_id, _sources(JobStatus.COMPLETED), fields)
		)
		self.log_operation("complete", job_id=job_id, updated=updated)
		return updated

	def fail(self, job_id: str, code: str, message: str, db: Session) -> bool:
		"""Record a terminal failure. Jobs that already finished are left untouched."""
		fields = {
			"status": JobStatus.FAILED.value,
			"progress": 100,
			"progress_message": FAILED_MESSAGE,
			"error_code": code,
			"error_message": message,
			"completed_at": utcnow(),
		}
		updated = self.run_in_transaction(db, lambda: self.job_repo.update_where_status(job_id, _sources(JobStatus.FAILED), fields))
		self.log_operation("fail", job_id=job_id, error_code=code, updated=updated)
		return updated

	def record_queue_message(self, job_id: str, message_id: Optional[str], db: Session) -> None:
		if not message_id:
			return
		self.run_in_transaction(
			db,
			lambda: self.job_repo.update_where_status(
				job_id, [s.value for s in JobStatus], {"queue_message_id": message_id}
			),
		)

	def fail_stale_jobs(self, db: Session, older_than_minutes: Optional[int] = None, limit: int = 100) -> List[str]:
		"""Fail processing jobs that no invocation has touched for too long."""
		minutes = older_than_minutes or settings.REAPER_STALE_MINUTES
		stale_before = utcnow() - timedelta(minutes=minutes)
		candidates = [job.id for job in self.job_repo.list_stale_processing(stale_before, limit)]

		failed: List[str] = []
		for job_id in candidates:
			fields = {
				"status": JobStatus.FAILED.value,
				"progress": 100,
				"progress_message": FAILED_MESSAGE,
				"error_code": "PROCESSING_TIMEOUT",
				"error_message": f"Processing did not finish within {minutes} minutes",
				"completed_at": utcnow(),
			}
			updated = self.run_in_transaction(
				db,
				lambda: self.job_repo.update_where_status(
					job_id, [JobStatus.PROCESSING.value], fields, updated_before=stale_before
				),
			)
			if updated:
				failed.append(job_id)

		self.log_operation("fail_stale_jobs", candidates=len(candidates), failed=len(failed))
		return failed
