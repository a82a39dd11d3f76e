"""Status Reader: read-only views over jobs and their artifacts."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from app.repositories.document_job import DocumentJobRepository
from app.repositories.planning_document import PlanningDocumentRepository
from app.repositories.planning_document_analysis import PlanningDocumentAnalysisRepository
from app.db.models.planning_document import PlanningDocument
from app.schemas.job import AnalysisStatus, JobRead, JobStatus
from app.schemas.planning import (
    CompareDocument,
    ComparisonRow,
    PlanningDocumentAnalysis,
    PlanningDocumentAnalysisRead,
    PlanningDocumentComparison,
    PlanningDocumentListItem,
    PlanningDocumentRead,
    PlanningDocumentSummary,
    PlanningDocumentViewType,
    SummaryView,
)
from app.services.base import BaseService
from app.services.exceptions import (
    AnalysisFailedError,
    AnalysisNotReadyError,
    JobNotFoundError,
    PlanningDocumentNotFoundError,
    ValidationError,
)

DEFAULT_DOCUMENT_TITLE = "Planning document"
MAX_COMPARED_DOCUMENTS = 50
KEY_OUTPUT_STEPS = 3


def document_title(summary: dict) -> str:
    meta = summary.get("meta") or {}
    site = summary.get("site") or {}
    return meta.get("documentTitle") or site.get("name") or site.get("address") or DEFAULT_DOCUMENT_TITLE


def route_label(summary: dict) -> Optional[str]:
    routes = (summary.get("proposal") or {}).get("route") or []
    return routes[0] if routes else None


# Display formatting shared by the view and compare builders

def format_number(value: Union[int, float]) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def dwellings_range(summary: PlanningDocumentSummary) -> Optional[str]:
    proposal = summary.proposal
    if proposal.dwellings_min is None or proposal.dwellings_max is None:
        return None
    return f"{format_number(proposal.dwellings_min)}–{format_number(proposal.dwellings_max)}"


def council_fee_label(summary: PlanningDocumentSummary) -> Optional[str]:
    amount = summary.fees.planning_authority_fee.amount
    return None if amount is None else f"£{format_number(amount)}"


def agent_fee_label(summary: PlanningDocumentSummary) -> Optional[str]:
    fee = summary.fees.agent_fee
    if fee.amount is None:
        return None
    return f"£{format_number(fee.amount)}" + (" + VAT" if fee.vat_excluded else "")


def first_route(summary: PlanningDocumentSummary) -> Optional[str]:
    return summary.proposal.route[0] if summary.proposal.route else None


def key_outputs(summary: PlanningDocumentSummary) -> Optional[str]:
    return ", ".join(summary.process.steps[:KEY_OUTPUT_STEPS]) or None


def _joined(parts: Sequence[Optional[str]]) -> Optional[str]:
    return " · ".join(part for part in parts if part) or None


def build_summary_view(summary: PlanningDocumentSummary) -> SummaryView:
    site, proposal = summary.site, summary.proposal
    dwellings = dwellings_range(summary)
    bullets = [
        site.address and f"Site: {site.address}",
        proposal.description and f"Proposal: {proposal.description}",
        dwellings and f"Dwellings: {dwellings}",
        site.local_authority and f"Local authority: {site.local_authority}",
    ]
    return SummaryView(
        title=site.name or site.address or DEFAULT_DOCUMENT_TITLE,
        bullets=[bullet for bullet in bullets if bullet],
    )


def build_compare_document(document_id: str, summary: PlanningDocumentSummary) -> CompareDocument:
    dwellings = dwellings_range(summary)
    council, agent = council_fee_label(summary), agent_fee_label(summary)
    local_authority = summary.site.local_authority
    return CompareDocument(
        document_id=document_id,
        title=summary.meta.document_title or summary.site.name or DEFAULT_DOCUMENT_TITLE,
        route_label=first_route(summary),
        site_address=summary.site.address,
        proposal_summary=_joined([
            summary.proposal.description,
            dwellings and f"{dwellings} dwellings",
            local_authority and f"Local authority: {local_authority}",
        ]),
        phase_one_fee_summary=_joined([
            council and f"Council: {council}",
            agent and f"Agent: {agent}",
        ]),
    )


COMPARISON_ROWS: Tuple[Tuple[str, Callable[[PlanningDocumentSummary], Optional[str]]], ...] = (
    ("Route type", first_route),
    ("Dwellings", dwellings_range),
    ("Phase 1 council fee", council_fee_label),
    ("Phase 1 agent fee", agent_fee_label),
    ("Key outputs", key_outputs),
)


def build_comparison_rows(summaries: List[PlanningDocumentSummary]) -> List[ComparisonRow]:
    """One row per compared attribute, with a value per document in input order."""
    return [
        ComparisonRow(label=label, values=[value(summary) for summary in summaries])
        for label, value in COMPARISON_ROWS
    ]


class StatusReaderService(BaseService):
    """Never writes, never caches. Every lookup is scoped to the owning user."""

    def __init__(
        self,
        job_repo: DocumentJobRepository,
        document_repo: PlanningDocumentRepository,
        analysis_repo: PlanningDocumentAnalysisRepository,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(correlation_id)
        self._set_repositories(job_repo=job_repo, document_repo=document_repo, analysis_repo=analysis_repo)

    def get_job(self, job_id: str, user_id: str) -> JobRead:
        job = self.job_repo.get_by_id_and_user(job_id, user_id)
        if job is None:
            raise JobNotFoundError(job_id, user_id, self.correlation_id)
        return JobRead.model_validate(job)

    def get_summary(self, document_id: str, user_id: str) -> PlanningDocumentRead:
        document = self._owned_document(document_id, user_id)
        return PlanningDocumentRead(
            id=document.id,
            job_id=document.job_id,
            site_id=document.site_id,
            file_name=document.file_name,
            summary=self._stored_summary(document),
            created_at=document.created_at,
        )

    def get_analysis(self, document_id: str, user_id: str) -> PlanningDocumentAnalysisRead:
        """Return the analysis, or say whether it is still coming or never will.

        Raises:
            PlanningDocumentNotFoundError: Unknown document or not owned by the user
            AnalysisNotReadyError: Analysis may still be produced
            AnalysisFailedError: Analysis failed permanently
        """
        document = self._owned_document(document_id, user_id)
        analysis = self.analysis_repo.get_latest_for_document(document.id)
        if analysis is not None:
            return PlanningDocumentAnalysisRead(
                id=analysis.id,
                planning_document_id=analysis.planning_document_id,
                analysis=PlanningDocumentAnalysis.model_validate(analysis.analysis_json or {}),
                created_at=analysis.created_at,
            )

        job = self.job_repo.get_by_id(document.job_id) if document.job_id else None
        if job is not None:
            if job.analysis_status == AnalysisStatus.ERROR.value:
                raise AnalysisFailedError(document.id, job.analysis_error, self.correlation_id)
            if JobStatus(job.status).is_terminal:
                # Terminal job without an analysis: nothing will produce one now
                raise AnalysisFailedError(document.id, job.analysis_error or job.error_message, self.correlation_id)
        raise AnalysisNotReadyError(document.id, self.correlation_id)

    def get_view(
        self,
        document_id: str,
        user_id: str,
        view_type: str = PlanningDocumentViewType.SUMMARY.value,
        site_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Render one panel of a document: summary, process, fees or analysis.

        A ``site_id`` that does not match the document's site reads as not found.
        The analysis panel follows ``get_analysis`` (404 while pending, 410 once failed).
        """
        try:
            view = PlanningDocumentViewType(view_type)
        except ValueError:
            allowed = ", ".join(v.value for v in PlanningDocumentViewType)
            raise ValidationError(
                field="view_type",
                message=f"must be one of {allowed}",
                correlation_id=self.correlation_id,
            ) from None

        document = self._owned_document(document_id, user_id)
        if site_id and document.site_id != site_id:
            raise PlanningDocumentNotFoundError(document_id, user_id, self.correlation_id)

        if view == PlanningDocumentViewType.ANALYSIS:
            result = self.get_analysis(document.id, user_id).analysis
        else:
            summary = self._stored_summary(document)
            if view == PlanningDocumentViewType.SUMMARY:
                result = build_summary_view(summary)
            elif view == PlanningDocumentViewType.PROCESS:
                result = summary.process
            else:
                result = summary.fees
        self.log_operation("get_view", document_id=document.id, view_type=view.value)
        return result.model_dump(by_alias=True, mode="json")

    def compare_documents(
        self,
        user_id: str,
        site_id: Optional[str] = None,
        document_ids: Optional[List[str]] = None,
    ) -> PlanningDocumentComparison:
        """Side-by-side comparison of a site's documents or an explicit id list, newest first.

        Raises:
            ValidationError: Neither filter given, or an empty id list
            PlanningDocumentNotFoundError: Nothing owned by the user matched
        """
        if not site_id and document_ids is None:
            raise ValidationError(
                field="site_id",
                message="site_id or document_ids is required",
                correlation_id=self.correlation_id,
            )
        if document_ids is not None and not document_ids:
            raise ValidationError(field="document_ids", message="document_ids is empty", correlation_id=self.correlation_id)

        documents = self.document_repo.list_for_comparison(
            user_id, site_id=site_id, document_ids=document_ids, limit=MAX_COMPARED_DOCUMENTS
        )
        if not documents:
            raise PlanningDocumentNotFoundError(",".join(document_ids or []) or site_id, user_id, self.correlation_id)

        summaries = [self._stored_summary(document) for document in documents]
        self.log_operation("compare_documents", site_id=site_id, count=len(documents))
        return PlanningDocumentComparison(
            documents=[build_compare_document(d.id, s) for d, s in zip(documents, summaries)],
            comparison_rows=build_comparison_rows(summaries),
        )

    def list_documents(self, site_id: str, user_id: str, skip: int = 0, limit: int = 100) -> List[PlanningDocumentListItem]:
        documents = self.document_repo.list_for_site(site_id, user_id, skip=skip, limit=limit)
        return [
            PlanningDocumentListItem(
                id=document.id,
                title=document_title(document.summary_json or {}),
                route_label=route_label(document.summary_json or {}),
                created_at=document.created_at,
            )
            for document in documents
        ]

    def _owned_document(self, document_id: str, user_id: str) -> PlanningDocument:
        document = self.document_repo.get_by_id_and_user(document_id, user_id)
        if document is None:
            raise PlanningDocumentNotFoundError(document_id, user_id, self.correlation_id)
        return document

    @staticmethod
    def _stored_summary(document: PlanningDocument) -> PlanningDocumentSummary:
        return PlanningDocumentSummary.model_validate(document.summary_json or {})
