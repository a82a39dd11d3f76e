"""Queue Dispatcher: accept an upload, persist it, and hand it to the queue.

Nothing durable is created until the upload passes validation. Once the Job
row exists the dispatcher either gets it onto the queue or marks it failed;
a job is never left queued with no message behind it.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models.document_job import DocumentJob
from app.schemas.job import ProcessingFocus
from app.services.base import BaseService
from app.services.exceptions import (
	FileSizeLimitError,
	InvalidFileTypeError,
	QueuePublishError,
	ValidationError,
)
from app.services.file_services import FileService, build_storage_path
from app.services.job_services import DocumentJobService
from app.services.queue import QueuePublisher

PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/webp")
ALLOWED_MIME_TYPES = [PDF_MIME_TYPE, *IMAGE_MIME_TYPES]

_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg", "image/x-png": "image/png"}
_PIL_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp"}

MAX_SITE_ID_LENGTH = DocumentJob.__table__.columns["site_id"].type.length
MAX_FILE_NAME_LENGTH = DocumentJob.__table__.columns["file_name"].type.length


@dataclass
class DispatchResult:
	job_id: str
	storage_path: str
	queue_message_id: Optional[str] = None


def normalize_mime_type(mime_type: Optional[str]) -> str:
	value = (mime_type or "").split(";", 1)[0].strip().lower()
	return _MIME_ALIASES.get(value, value)


def clip_file_name(file_name: str, limit: int = MAX_FILE_NAME_LENGTH) -> str:
	"""Shorten ``file_name`` to ``limit`` characters, keeping its extension."""
	if len(file_name) <= limit:
		return file_name
	stem, dot, ext = file_name.rpartition(".")
	if not dot or len(ext) + 1 >= limit:
		return file_name[:limit]
	return stem[: limit - len(ext) - 1] + "." + ext


class DocumentDispatchService(BaseService):
	def __init__(
		self,
		job_service: DocumentJobService,
		file_service: FileService,
		publisher: QueuePublisher,
		correlation_id: Optional[str] = None,
	):
		super().__init__(correlation_id)
		self.job_service = job_service
		self.file_service = file_service
		self.publisher = publisher

	def validate(self, data: bytes, file_name: str, mime_type: Optional[str]) -> str:
		"""Check type, size and magic bytes. Returns the normalized MIME type.

		Raises:
			InvalidFileTypeError: Unsupported type, or bytes that are not what the type claims
			FileSizeLimitError: Empty or oversized upload
		"""
		normalized = normalize_mime_type(mime_type)
		if normalized not in ALLOWED_MIME_TYPES:
			raise InvalidFileTypeError(file_name, normalized or "unknown", ALLOWED_MIME_TYPES, self.correlation_id)

		max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
		if len(data) == 0 or len(data) > max_size:
			raise FileSizeLimitError(file_name, len(data), max_size, self.correlation_id)

		if normalized == PDF_MIME_TYPE:
			if not data.startswith(b"%PDF"):
				raise InvalidFileTypeError(file_name, "corrupt or non-PDF data", ALLOWED_MIME_TYPES, self.correlation_id)
			return normalized

		try:
			with Image.open(io.BytesIO(data)) as image:
				detected = _PIL_FORMATS.get(image.format or "")
				image.verify()
		except (UnidentifiedImageError, OSError, SyntaxError) as e:
			raise InvalidFileTypeError(file_name, f"undecodable image ({e})", ALLOWED_MIME_TYPES, self.correlation_id) from e
		if detected is None:
			raise InvalidFileTypeError(file_name, "unsupported image format", ALLOWED_MIME_TYPES, self.correlation_id)
		# Trust the decoded format over the client's declared type
		return detected

	def enqueue(
		self,
		data: bytes,
		owner_id: str,
		site_id: str,
		file_name: str,
		mime_type: Optional[str],
		db: Session,
		focus: Optional[ProcessingFocus] = None,
	) -> DispatchResult:
		"""Validate, store, record and publish one uploaded document.

		Raises:
			ValidationError: Rejected upload; nothing was stored
			BlobStorageError: Storage failed; no job was created
			QueuePublishError: The job exists but is already marked failed
		"""
		site_id = (site_id or "").strip()
		if not site_id:
			raise ValidationError(field="site_id", message="site_id is required", correlation_id=self.correlation_id)
		if len(site_id) > MAX_SITE_ID_LENGTH:
			raise ValidationError(
				field="site_id",
				message=f"site_id must be at most {MAX_SITE_ID_LENGTH} characters",
				correlation_id=self.correlation_id,
			)
		file_name = clip_file_name((file_name or "").strip() or "document")

		normalized = self.validate(data, file_name, mime_type)
		storage_path = build_storage_path(site_id, file_name)
		self.file_service.put(storage_path, data, normalized)

		job = self.job_service.create_job(
			user_id=owner_id,
			site_id=site_id,
			storage_path=storage_path,
			file_name=file_name,
			file_size=len(data),
			mime_type=normalized,
			focus=focus,
			db=db,
		)
		job_id = job.id

		try:
			message_id = self.publisher.publish(job_id, focus)
		except QueuePublishError as e:
			self.logger.error(
				"Queue publish failed, marking job failed",
				extra={"correlation_id": self.correlation_id, "job_id": job_id, "error": e.reason},
			)
			self.job_service.fail(job_id, e.error_code, f"Could not queue document for processing: {e.reason}", db)
			raise QueuePublishError(e.reason, job_id, self.correlation_id) from e

		self.job_service.record_queue_message(job_id, message_id, db)
		self.log_operation("enqueue", job_id=job_id, site_id=site_id, mime_type=normalized, file_size=len(data))
		return DispatchResult(job_id=job_id, storage_path=storage_path, queue_message_id=message_id)
