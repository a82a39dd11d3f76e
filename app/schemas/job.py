from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class JobStatus(str, Enum):
	QUEUED = "queued"
	PROCESSING = "processing"
	COMPLETED = "completed"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class AnalysisStatus(str, Enum):
	PENDING = "pending"
	READY = "ready"
	ERROR = "error"


class ProcessingFocus(str, Enum):
	DRAWINGS = "drawings"


# Forward-only lifecycle; FAILED is reachable from QUEUED when publishing fails
ALLOWED_STATUS_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
	JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
	JobStatus.PROCESSING: frozenset({JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}),
	JobStatus.COMPLETED: frozenset(),
	JobStatus.FAILED: frozenset(),
}


class JobRead(BaseModel):
	id: str
	site_id: str
	file_name: str
	mime_type: str
	focus: Optional[ProcessingFocus] = None
	status: JobStatus
	progress: int = Field(ge=0, le=100)
	progress_message: Optional[str] = None
	attempts: int = 0
	error_code: Optional[str] = None
	error_message: Optional[str] = None
	analysis_status: AnalysisStatus
	analysis_error: Optional[str] = None
	planning_document_id: Optional[str] = None
	started_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@field_validator('progress', mode='before')
	@classmethod
	def validate_progress(cls, v: int) -> int:
		if v is None or v < 0:
			return 0
		if v > 100:
			return 100
		return v


class UploadAccepted(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	job_id: str = Field(serialization_alias="jobId")
	status: JobStatus = JobStatus.QUEUED


class ProcessCallbackPayload(BaseModel):
	"""Body published to the queue and delivered back to the worker."""

	model_config = ConfigDict(populate_by_name=True)

	job_id: str = Field(alias="jobId", min_length=1, max_length=64)
	focus: Optional[ProcessingFocus] = None

	@field_validator('focus', mode='before')
	@classmethod
	def drop_unknown_focus(cls, v):
		# Unknown hints are ignored rather than rejected
		if v is None:
			return None
		try:
			return ProcessingFocus(v)
		except ValueError:
			return None


class ProcessOutcome(str, Enum):
	PROCESSED = "processed"
	SKIPPED = "skipped"
	NOT_FOUND = "not_found"


class ProcessCallbackResult(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	job_id: str = Field(serialization_alias="jobId")
	outcome: ProcessOutcome
	status: Optional[JobStatus] = None
	analysis_status: Optional[AnalysisStatus] = Field(default=None, serialization_alias="analysisStatus")


class ReapResult(BaseModel):
	failed_job_ids: list[str] = Field(default_factory=list, serialization_alias="failedJobIds")
