"""Service dependency providers for FastAPI dependency injection."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.api.dependencies.database import get_db
from app.core.config import settings
from app.repositories.document_job import DocumentJobRepository
from app.repositories.planning_document import PlanningDocumentRepository
from app.repositories.planning_document_analysis import PlanningDocumentAnalysisRepository
from app.services.dispatcher import DocumentDispatchService
from app.services.extraction import PlanningExtractionAdapter
from app.services.file_services import FileService
from app.services.job_services import DocumentJobService
from app.services.pipeline import PipelineWorker
from app.services.queue import CallbackSignatureVerifier, QueuePublisher
from app.services.status_reader import StatusReaderService


def get_correlation_id(request: Request) -> Optional[str]:
	"""Extract or generate correlation ID for logging and tracing."""
	from app.core.observability import generate_correlation_id
	cid = getattr(request.state, "correlation_id", None)
	if not cid:
		cid = generate_correlation_id(request.headers.get("X-Correlation-ID"))
		setattr(request.state, "correlation_id", cid)
	return cid


# Repository Dependencies
def get_document_job_repository(
    db: Session = Depends(get_db),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> DocumentJobRepository:
    """Provide DocumentJobRepository instance."""
    return DocumentJobRepository(db=db, correlation_id=correlation_id)


def get_planning_document_repository(
    db: Session = Depends(get_db),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> PlanningDocumentRepository:
    """Provide PlanningDocumentRepository instance."""
    return PlanningDocumentRepository(db=db, correlation_id=correlation_id)


def get_planning_document_analysis_repository(
    db: Session = Depends(get_db),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> PlanningDocumentAnalysisRepository:
    """Provide PlanningDocumentAnalysisRepository instance."""
    return PlanningDocumentAnalysisRepository(db=db, correlation_id=correlation_id)


# External collaborators (overridden in tests)
def get_file_service(
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> FileService:
    """Provide the Blob Store backed by MinIO.

    The MinIO client is only created when the first object is read or
    written.
    """
    return FileService(correlation_id=correlation_id)


def get_queue_publisher(
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> QueuePublisher:
    """Provide QueuePublisher instance."""
    return QueuePublisher(correlation_id=correlation_id)


def get_signature_verifier(
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> CallbackSignatureVerifier:
    """Provide CallbackSignatureVerifier configured with the current and next keys."""
    return CallbackSignatureVerifier(correlation_id=correlation_id)


def get_reaper_signature_verifier(
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> CallbackSignatureVerifier:
    """Provide a verifier whose subject check targets the reaper endpoint."""
    return CallbackSignatureVerifier(
        expected_url=settings.REAP_JOBS_URL or "",
        correlation_id=correlation_id,
        require_subject=True,
    )


def get_extraction_adapter(
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> PlanningExtractionAdapter:
    """Provide PlanningExtractionAdapter calling Gemini."""
    return PlanningExtractionAdapter(correlation_id=correlation_id)


# Service Dependencies
def get_document_job_service(
    job_repo: DocumentJobRepository = Depends(get_document_job_repository),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> DocumentJobService:
    """Provide DocumentJobService instance with required repository."""
    return DocumentJobService(job_repo=job_repo, correlation_id=correlation_id)


def get_dispatch_service(
    job_service: DocumentJobService = Depends(get_document_job_service),
    file_service: FileService = Depends(get_file_service),
    publisher: QueuePublisher = Depends(get_queue_publisher),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> DocumentDispatchService:
    """Provide DocumentDispatchService wired to the Job Store, Blob Store and queue.

    Args:
        job_service: Job Store service from dependency injection
        file_service: Blob Store service from dependency injection
        publisher: Queue publisher from dependency injection
        correlation_id: Optional correlation ID from request headers

    Returns:
        Configured DocumentDispatchService instance
    """
    return DocumentDispatchService(
        job_service=job_service,
        file_service=file_service,
        publisher=publisher,
        correlation_id=correlation_id
    )


def get_pipeline_worker(
    job_service: DocumentJobService = Depends(get_document_job_service),
    document_repo: PlanningDocumentRepository = Depends(get_planning_document_repository),
    analysis_repo: PlanningDocumentAnalysisRepository = Depends(get_planning_document_analysis_repository),
    file_service: FileService = Depends(get_file_service),
    adapter: PlanningExtractionAdapter = Depends(get_extraction_adapter),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> PipelineWorker:
    """Provide PipelineWorker with every collaborator it drives."""
    return PipelineWorker(
        job_service=job_service,
        document_repo=document_repo,
        analysis_repo=analysis_repo,
        file_service=file_service,
        adapter=adapter,
        correlation_id=correlation_id
    )


def get_status_reader(
    job_repo: DocumentJobRepository = Depends(get_document_job_repository),
    document_repo: PlanningDocumentRepository = Depends(get_planning_document_repository),
    analysis_repo: PlanningDocumentAnalysisRepository = Depends(get_planning_document_analysis_repository),
    correlation_id: Optional[str] = Depends(get_correlation_id)
) -> StatusReaderService:
    """Provide the read-only StatusReaderService."""
    return StatusReaderService(
        job_repo=job_repo,
        document_repo=document_repo,
        analysis_repo=analysis_repo,
        correlation_id=correlation_id
    )
