from typing import Optional

from fastapi import Depends, File, Form, Header, Request, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.api.router import create_router, DEFAULT_ERROR_RESPONSES, UPLOAD_ERROR_RESPONSES
from app.api.dependencies.auth import get_current_user
from app.api.dependencies.database import get_db
from app.api.dependencies.services import (
	get_correlation_id,
	get_dispatch_service,
	get_document_job_service,
	get_pipeline_worker,
	get_reaper_signature_verifier,
	get_signature_verifier,
)
from app.schemas.auth import CurrentUser
from app.schemas.job import ProcessCallbackPayload, ProcessCallbackResult, ProcessingFocus, ReapResult, UploadAccepted
from app.services.dispatcher import DocumentDispatchService
from app.services.exceptions import ValidationError
from app.services.job_services import DocumentJobService
from app.services.pipeline import PipelineWorker
from app.services.queue import CallbackSignatureVerifier


router = create_router(name="documents", default_responses={**DEFAULT_ERROR_RESPONSES, **UPLOAD_ERROR_RESPONSES})


async def get_raw_body(request: Request) -> bytes:
	return await request.body()


def _parse_focus(value: Optional[str]) -> Optional[ProcessingFocus]:
	if not value:
		return None
	try:
		return ProcessingFocus(value.strip().lower())
	except ValueError:
		return None


@router.post("/upload", response_model=UploadAccepted, status_code=status.HTTP_202_ACCEPTED)
def upload_document(
	request: Request,
	file: UploadFile = File(...),
	site_id: str = Form(...),
	focus: Optional[str] = Form(None),
	db: Session = Depends(get_db),
	current_user: CurrentUser = Depends(get_current_user),
	dispatch_service: DocumentDispatchService = Depends(get_dispatch_service),
):
	"""Store a planning document and queue it for processing.

	Returns 202 with the job id; progress is then read from ``/jobs/{job_id}``.
	"""
	# One byte past the limit is enough to reject an oversized upload
	data = file.file.read(settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024 + 1)
	result = dispatch_service.enqueue(
		data=data,
		owner_id=current_user.id,
		site_id=site_id,
		file_name=file.filename or "",
		mime_type=file.content_type,
		db=db,
		focus=_parse_focus(focus),
	)
	request.state.job_id = result.job_id
	return UploadAccepted(job_id=result.job_id)


@router.post("/process", response_model=ProcessCallbackResult, response_model_exclude_none=True)
def process_document(
	request: Request,
	body: bytes = Depends(get_raw_body),
	upstash_signature: Optional[str] = Header(None, alias="Upstash-Signature"),
	db: Session = Depends(get_db),
	verifier: CallbackSignatureVerifier = Depends(get_signature_verifier),
	worker: PipelineWorker = Depends(get_pipeline_worker),
	correlation_id: Optional[str] = Depends(get_correlation_id),
):
	"""Queue callback: run the pipeline for one job.

	Answers 200 for every outcome the queue should not retry, including jobs
	that failed. Only an unrecordable failure answers 5xx.
	"""
	verifier.verify(upstash_signature, body)

	try:
		payload = ProcessCallbackPayload.model_validate_json(body or b"{}")
	except PydanticValidationError as e:
		raise ValidationError(
			field="body",
			message="expected a JSON object with a jobId",
			correlation_id=correlation_id,
			validation_errors=[{"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]} for err in e.errors()],
		) from e

	# Picked up by the request logging middleware
	request.state.job_id = payload.job_id
	return worker.process(payload.job_id, payload.focus, db)


@router.post("/jobs/reap", response_model=ReapResult)
def reap_stale_jobs(
	body: bytes = Depends(get_raw_body),
	upstash_signature: Optional[str] = Header(None, alias="Upstash-Signature"),
	db: Session = Depends(get_db),
	verifier: CallbackSignatureVerifier = Depends(get_reaper_signature_verifier),
	job_service: DocumentJobService = Depends(get_document_job_service),
):
	"""Fail jobs stuck in processing longer than the reaper window."""
	verifier.verify(upstash_signature, body)
	return ReapResult(failed_job_ids=job_service.fail_stale_jobs(db))
