"""Pipeline Worker: drives one claimed job through extraction to a terminal state.

Steps run in a fixed order described by ``TRANSITIONS``. Each entry names the
progress written once the step succeeds and whether a failure in that step
fails the whole job. Every Job Store write is committed before the next step
starts, so a killed invocation leaves the job exactly where it stopped and a
later redelivery can pick it up again.

Analysis runs on its own track: its failure is recorded on the job's
``analysis_status`` and never prevents the job from completing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models.document_job import DocumentJob
from app.repositories.planning_document import PlanningDocumentRepository
from app.repositories.planning_document_analysis import PlanningDocumentAnalysisRepository
from app.schemas.job import AnalysisStatus, JobStatus, ProcessCallbackResult, ProcessOutcome, ProcessingFocus
from app.schemas.planning import PlanningDocumentSummary
from app.services.base import BaseService
from app.services.dispatcher import PDF_MIME_TYPE
from app.services.exceptions import (
	ContentError,
	ImageOnlyPdfError,
	InvalidJobTransitionError,
	SchemaError,
	ServiceError,
	UnsupportedDocumentTypeError,
	UpstreamError,
)
from app.services.extraction import PlanningExtractionAdapter
from app.services.file_services import FileService
from app.services.job_services import DocumentJobService


class PipelineStep(str, Enum):
	CLAIM = "claim"
	DOWNLOAD = "download"
	EXTRACT_SUMMARY = "extract_summary"
	PERSIST_SUMMARY = "persist_summary"
	ANALYZE = "analyze"
	FINALIZE = "finalize"


@dataclass(frozen=True)
class StepTransition:
	progress: Optional[int]
	message: Optional[str]
	fatal: bool


ANALYSIS_COMPLETE_MESSAGE = "Analysis complete"
SUMMARY_READY_MESSAGE = "Summary ready"

TRANSITIONS: dict[PipelineStep, StepTransition] = {
	PipelineStep.CLAIM: StepTransition(10, "Downloading document", fatal=True),
	PipelineStep.DOWNLOAD: StepTransition(35, "Extracting planning summary", fatal=True),
	PipelineStep.EXTRACT_SUMMARY: StepTransition(None, None, fatal=True),
	PipelineStep.PERSIST_SUMMARY: StepTransition(70, "Generating planning analysis", fatal=True),
	PipelineStep.ANALYZE: StepTransition(None, None, fatal=False),
	PipelineStep.FINALIZE: StepTransition(100, None, fatal=True),
}

# Steps after CLAIM, in execution order
PIPELINE_STEPS = (
	PipelineStep.DOWNLOAD,
	PipelineStep.EXTRACT_SUMMARY,
	PipelineStep.PERSIST_SUMMARY,
	PipelineStep.ANALYZE,
	PipelineStep.FINALIZE,
)


@dataclass
class PipelineContext:
	job_id: str
	user_id: str
	site_id: str
	storage_path: str
	file_name: str
	mime_type: str
	focus: Optional[str] = None
	attempt: int = 1
	data: Optional[bytes] = None
	text: Optional[str] = None
	summary: Optional[PlanningDocumentSummary] = None
	planning_document_id: Optional[str] = None
	summary_reused: bool = False
	analysis_status: AnalysisStatus = AnalysisStatus.PENDING

	@classmethod
	def from_job(cls, job: DocumentJob, focus: Optional[ProcessingFocus]) -> "PipelineContext":
		return cls(
			job_id=job.id,
			user_id=job.user_id,
			site_id=job.site_id,
			storage_path=job.storage_path,
			file_name=job.file_name,
			mime_type=job.mime_type,
			focus=focus.value if focus else job.focus,
			attempt=job.attempts,
			planning_document_id=job.planning_document_id,
			summary_reused=job.planning_document_id is not None,
			analysis_status=AnalysisStatus(job.analysis_status),
		)

	@property
	def is_pdf(self) -> bool:
		return self.mime_type == PDF_MIME_TYPE


class PipelineWorker(BaseService):
	def __init__(
		self,
		job_service: DocumentJobService,
		document_repo: PlanningDocumentRepository,
		analysis_repo: PlanningDocumentAnalysisRepository,
		file_service: FileService,
		adapter: PlanningExtractionAdapter,
		correlation_id: Optional[str] = None,
	):
		super().__init__(correlation_id)
		self._set_repositories(document_repo=document_repo, analysis_repo=analysis_repo)
		self.job_service = job_service
		self.file_service = file_service
		self.adapter = adapter
		self._handlers = {
			PipelineStep.DOWNLOAD: self._download,
			PipelineStep.EXTRACT_SUMMARY: self._extract_summary,
			PipelineStep.PERSIST_SUMMARY: self._persist_summary,
			PipelineStep.ANALYZE: self._analyze,
			PipelineStep.FINALIZE: self._finalize,
		}

	def process(self, job_id: str, focus: Optional[ProcessingFocus], db: Session) -> ProcessCallbackResult:
		"""Handle one queue delivery for ``job_id``.

		Only a failure to record the job's failure escapes this method; every
		other error ends with the job marked failed.
		"""
		job = self.job_service.get(job_id)
		if job is None:
			self.log_operation("process_unknown_job", job_id=job_id)
			return ProcessCallbackResult(job_id=job_id, outcome=ProcessOutcome.NOT_FOUND)

		claim = TRANSITIONS[PipelineStep.CLAIM]
		if not self.job_service.claim(job_id, claim.progress, claim.message, db):
			current = self.job_service.get(job_id)
			self.log_operation("process_skipped", job_id=job_id, status=current.status)
			return ProcessCallbackResult(
				job_id=job_id,
				outcome=ProcessOutcome.SKIPPED,
				status=JobStatus(current.status),
				analysis_status=AnalysisStatus(current.analysis_status),
			)

		ctx = PipelineContext.from_job(self.job_service.get(job_id), focus)
		self.log_operation("process_claimed", job_id=job_id, attempt=ctx.attempt, reused_summary=ctx.summary_reused)

		step = PipelineStep.CLAIM
		try:
			for step in PIPELINE_STEPS:
				self._handlers[step](ctx, db)
		except ServiceError as e:
			self._log_step_failure(step, ctx, e)
			self.job_service.fail(job_id, e.error_code, e.user_message, db)
		except Exception:
			self.logger.exception(
				"Unexpected pipeline failure",
				extra={"correlation_id": self.correlation_id, "job_id": job_id, "step": step.value},
			)
			self.job_service.fail(job_id, "INTERNAL_ERROR", "Unexpected error while processing document", db)

		final = self.job_service.get(job_id)
		return ProcessCallbackResult(
			job_id=job_id,
			outcome=ProcessOutcome.PROCESSED,
			status=JobStatus(final.status),
			analysis_status=AnalysisStatus(final.analysis_status),
		)

	# Steps

	def _download(self, ctx: PipelineContext, db: Session) -> None:
		if not self._needs_document(ctx):
			self._advance(PipelineStep.DOWNLOAD, ctx, db)
			return
		if not (ctx.is_pdf or ctx.mime_type.startswith("image/")):
			raise UnsupportedDocumentTypeError(ctx.mime_type, self.correlation_id)
		ctx.data = self.file_service.get(ctx.storage_path)
		self._advance(PipelineStep.DOWNLOAD, ctx, db)

	def _extract_summary(self, ctx: PipelineContext, db: Session) -> None:
		if ctx.summary_reused:
			return
		if ctx.is_pdf:
			ctx.summary = self.adapter.summarize_text(self._document_text(ctx), ctx.file_name)
		else:
			ctx.summary = self.adapter.summarize_image(ctx.data, ctx.mime_type, ctx.file_name, ctx.focus)

	def _persist_summary(self, ctx: PipelineContext, db: Session) -> None:
		transition = TRANSITIONS[PipelineStep.PERSIST_SUMMARY]
		if not ctx.summary_reused:
			document = self.run_in_transaction(
				db,
				lambda: self.document_repo.create({
					"job_id": ctx.job_id,
					"user_id": ctx.user_id,
					"site_id": ctx.site_id,
					"storage_path": ctx.storage_path,
					"file_name": ctx.file_name,
					"summary_json": ctx.summary.model_dump(by_alias=True, mode="json"),
				}),
			)
			ctx.planning_document_id = document.id
			self.log_operation("summary_persisted", job_id=ctx.job_id, planning_document_id=ctx.planning_document_id)

		if not self.job_service.link_summary(ctx.job_id, ctx.planning_document_id, transition.progress, transition.message, db):
			raise InvalidJobTransitionError(ctx.job_id, "not processing", JobStatus.PROCESSING.value, self.correlation_id)

	def _analyze(self, ctx: PipelineContext, db: Session) -> None:
		if self.analysis_repo.get_latest_for_document(ctx.planning_document_id) is not None:
			if ctx.analysis_status != AnalysisStatus.READY:
				self.job_service.mark_analysis(ctx.job_id, AnalysisStatus.READY, db)
			ctx.analysis_status = AnalysisStatus.READY
			return

		try:
			if ctx.is_pdf:
				analysis = self.adapter.analyze_text(self._document_text(ctx), ctx.file_name)
			else:
				analysis = self.adapter.analyze_image(ctx.data, ctx.mime_type, ctx.file_name, ctx.focus)
			self.run_in_transaction(
				db,
				lambda: self.analysis_repo.create({
					"planning_document_id": ctx.planning_document_id,
					"job_id": ctx.job_id,
					"user_id": ctx.user_id,
					"analysis_json": analysis.model_dump(by_alias=True, mode="json"),
				}),
			)
		except Exception as e:
			self._log_step_failure(PipelineStep.ANALYZE, ctx, e)
			reason = e.user_message if isinstance(e, ServiceError) else "Unexpected error while generating analysis"
			self.job_service.mark_analysis(ctx.job_id, AnalysisStatus.ERROR, db, error=reason)
			ctx.analysis_status = AnalysisStatus.ERROR
			return

		self.job_service.mark_analysis(ctx.job_id, AnalysisStatus.READY, db)
		ctx.analysis_status = AnalysisStatus.READY

	def _finalize(self, ctx: PipelineContext, db: Session) -> None:
		message = ANALYSIS_COMPLETE_MESSAGE if ctx.analysis_status == AnalysisStatus.READY else SUMMARY_READY_MESSAGE
		completed = self.job_service.complete(ctx.job_id, message, db)
		self.log_operation("process_finalized", job_id=ctx.job_id, completed=completed, analysis_status=ctx.analysis_status.value)

	# Helpers

	def _needs_document(self, ctx: PipelineContext) -> bool:
		if not ctx.summary_reused:
			return True
		return self.analysis_repo.get_latest_for_document(ctx.planning_document_id) is None

	def _document_text(self, ctx: PipelineContext) -> str:
		if ctx.text is None:
			text = self.adapter.pdf_text(ctx.data).strip()
			if len(text) < settings.MIN_PDF_TEXT_CHARS:
				raise ImageOnlyPdfError(len(text), settings.MIN_PDF_TEXT_CHARS, self.correlation_id)
			ctx.text = text
		return ctx.text

	def _advance(self, step: PipelineStep, ctx: PipelineContext, db: Session) -> None:
		transition = TRANSITIONS[step]
		if not self.job_service.advance(ctx.job_id, transition.progress, transition.message, db):
			raise InvalidJobTransitionError(ctx.job_id, "not processing", JobStatus.PROCESSING.value, self.correlation_id)

	def _log_step_failure(self, step: PipelineStep, ctx: PipelineContext, error: Exception) -> None:
		extra = {
			"correlation_id": self.correlation_id,
			"job_id": ctx.job_id,
			"step": step.value,
			"fatal": TRANSITIONS[step].fatal,
			"error_type": type(error).__name__,
			"error": str(error),
		}
		if isinstance(error, SchemaError):
			# Usually prompt or schema drift rather than a transient fault
			self.logger.error("Model output failed schema validation", extra=extra)
		elif isinstance(error, UpstreamError):
			self.logger.warning("Upstream dependency failed", extra=extra)
		elif isinstance(error, ContentError):
			self.logger.info("Document content rejected", extra=extra)
		elif isinstance(error, ServiceError):
			self.logger.warning("Pipeline step failed", extra=extra)
		else:
			self.logger.error("Pipeline step raised unexpected error", extra=extra, exc_info=error)
