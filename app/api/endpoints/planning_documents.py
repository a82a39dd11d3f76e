from typing import Any, Dict, List, Optional

from fastapi import Depends, Query

from app.api.router import create_router, DEFAULT_ERROR_RESPONSES, ANALYSIS_ERROR_RESPONSES
from app.api.dependencies.auth import get_current_user
from app.api.dependencies.services import get_status_reader
from app.schemas.auth import CurrentUser
from app.schemas.planning import (
	PlanningDocumentAnalysisRead,
	PlanningDocumentComparison,
	PlanningDocumentListItem,
	PlanningDocumentRead,
)
from app.services.status_reader import StatusReaderService


router = create_router(name="planning_documents")


@router.get("", response_model=List[PlanningDocumentListItem])
def list_planning_documents(
	site_id: str = Query(..., min_length=1),
	skip: int = Query(0, ge=0),
	limit: int = Query(50, ge=1, le=200),
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	"""Planning documents for a site, newest first."""
	return status_reader.list_documents(site_id, current_user.id, skip=skip, limit=limit)


@router.get("/compare", response_model=PlanningDocumentComparison)
def compare_planning_documents(
	site_id: Optional[str] = Query(None),
	document_ids: Optional[str] = Query(None, description="Comma-separated planning document ids"),
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	"""Compare a site's documents, or an explicit set of them, side by side."""
	ids = None
	if document_ids is not None:
		ids = [value.strip() for value in document_ids.split(",") if value.strip()]
	return status_reader.compare_documents(current_user.id, site_id=site_id, document_ids=ids)


@router.get("/{document_id}/summary", response_model=PlanningDocumentRead)
def get_planning_summary(
	document_id: str,
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	return status_reader.get_summary(document_id, current_user.id)


@router.get(
	"/{document_id}/analysis",
	response_model=PlanningDocumentAnalysisRead,
	responses={**DEFAULT_ERROR_RESPONSES, **ANALYSIS_ERROR_RESPONSES},
)
def get_planning_analysis(
	document_id: str,
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	"""Analysis for a document.

	404 with ``ANALYSIS_NOT_READY`` means keep polling; 410 with
	``ANALYSIS_FAILED`` means it will never exist.
	"""
	return status_reader.get_analysis(document_id, current_user.id)


@router.get(
	"/{document_id}/view",
	response_model=Dict[str, Any],
	responses={**DEFAULT_ERROR_RESPONSES, **ANALYSIS_ERROR_RESPONSES},
)
def get_planning_document_view(
	document_id: str,
	view_type: str = Query("summary"),
	site_id: Optional[str] = Query(None),
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	"""One display panel: ``summary``, ``process``, ``fees`` or ``analysis``."""
	return status_reader.get_view(document_id, current_user.id, view_type=view_type, site_id=site_id)
