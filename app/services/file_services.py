"""Blob Store service: raw document bytes in MinIO.

Objects are written once by the upload step and read by the pipeline worker.
Storage failures are raised as domain exceptions so callers can tell a missing
object apart from an unavailable store.
"""

import io
import re
import uuid
from typing import Optional

from minio import Minio
from minio.error import S3Error

from app.core.config import settings
from app.core.observability import log_outbound_call
from app.services.base import BaseService
from app.services.exceptions import BlobNotFoundError, BlobStorageError

_MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


def sanitize_file_name(file_name: str) -> str:
    """Reduce a client-supplied name to a safe object-key segment."""
    base = (file_name or "").replace("\\", "/").split("/")[-1]
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", base.strip()).replace("..", "_")
    return safe[:120] or "document"


def build_storage_path(site_id: str, file_name: str) -> str:
    site = re.sub(r"[^A-Za-z0-9_-]", "_", (site_id or "").strip())[:64] or "unassigned"
    return f"{site}/{uuid.uuid4()}-{sanitize_file_name(file_name)}"


class FileService(BaseService):
    """Put and get document bytes by storage path.

    The MinIO client is created lazily so importing this module never opens
    a connection.
    """

    def __init__(self, client: Optional[Minio] = None, correlation_id: Optional[str] = None):
        super().__init__(correlation_id)
        self._client = client
        self.bucket = settings.MINIO_BUCKET

    @property
    def client(self) -> Minio:
        if self._client is None:
            from app.api.dependencies.storage import get_minio_client
            self._client = get_minio_client()
        return self._client

    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``path``.

        Raises:
            BlobStorageError: If the object could not be written
        """
        self.log_operation("blob_put_attempt", path=path, size=len(data), content_type=content_type)
        try:
            log_outbound_call(
                "minio",
                path,
                "put_object",
                self.correlation_id,
                lambda: self.client.put_object(
                    self.bucket,
                    path,
                    io.BytesIO(data),
                    length=len(data),
                    content_type=content_type,
                ),
            )
        except Exception as storage_error:
            raise BlobStorageError(
                operation="put",
                path=path,
                reason=str(storage_error),
                correlation_id=self.correlation_id
            ) from storage_error

        self.log_operation("blob_put_success", path=path)
        return path

    def get(self, path: str) -> bytes:
        """Read the object stored under ``path``.

        Raises:
            BlobNotFoundError: If no object exists at ``path``
            BlobStorageError: If the store could not be read
        """
        self.log_operation("blob_get_attempt", path=path)
        try:
            data = log_outbound_call("minio", path, "get_object", self.correlation_id, lambda: self._read(path))
        except S3Error as storage_error:
            if storage_error.code in _MISSING_OBJECT_CODES:
                raise BlobNotFoundError(path=path, correlation_id=self.correlation_id) from storage_error
            raise BlobStorageError(
                operation="get",
                path=path,
                reason=str(storage_error),
                correlation_id=self.correlation_id
            ) from storage_error
        except Exception as storage_error:
            raise BlobStorageError(
                operation="get",
                path=path,
                reason=str(storage_error),
                correlation_id=self.correlation_id
            ) from storage_error

        self.log_operation("blob_get_success", path=path, content_length=len(data))
        return data

    def _read(self, path: str) -> bytes:
        response = self.client.get_object(self.bucket, path)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()
