"""Domain-specific exceptions for service layer operations.

This module provides a structured exception hierarchy for the document
pipeline, enabling consistent error handling, logging, and client response
generation.

Architecture:
- ServiceError: Base exception with correlation ID and context support
- Category Base Classes: ValidationError, ContentError, UpstreamError,
  SchemaError, BusinessError, AuthError
- Specific Exceptions: Concrete exceptions for specific pipeline scenarios

Pipeline semantics:
- ValidationError: rejected synchronously at upload, never reaches the Job Store
- ContentError: the document itself is unusable; terminal, never retried
- UpstreamError: a dependency (blob store, model provider, queue) failed
- SchemaError: the model answered but the answer does not fit the schema
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from http import HTTPStatus


class ErrorSeverity(Enum):
    """Error severity levels for logging and monitoring."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification and handling."""
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CONTENT = "content"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    EXTERNAL_SERVICE = "external_service"
    SYSTEM = "system"


class ServiceError(Exception):
    """Base exception for all service layer errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for client handling
        correlation_id: Request correlation ID for tracing
        details: Additional error context (sanitized for logging)
        user_message: User-friendly message for client display
        severity: Error severity level for logging/monitoring
        category: Error category for classification
        http_status: HTTP status code for API responses
    """

    def __init__(
        self,
        message: str,
        error_code: str = "SERVICE_ERROR",
        correlation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        http_status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.correlation_id = correlation_id
        self.details = details or {}
        self.user_message = user_message or message
        self.severity = severity
        self.category = category
        self.http_status = http_status

    def to_dict(self, include_sensitive: bool = False) -> Dict[str, Any]:
        """Convert exception to dictionary for logging or client response.

        Args:
            include_sensitive: Whether to include sensitive details

        Returns:
            Dictionary representation of the error
        """
        result = {
            "error_code": self.error_code,
            "message": self.user_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "http_status": self.http_status.value
        }

        if self.correlation_id:
            result["correlation_id"] = self.correlation_id

        if include_sensitive and self.details:
            result["details"] = self.details
            result["internal_message"] = self.message

        return result

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


# =============================================================================
# AUTHENTICATION ERRORS
# =============================================================================

class AuthError(ServiceError):
    """Base class for authentication errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        correlation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            correlation_id=correlation_id,
            details=details,
            user_message=user_message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.AUTHENTICATION,
            http_status=HTTPStatus.UNAUTHORIZED
        )


class AuthenticationError(AuthError):
    """Caller could not be authenticated."""

    def __init__(self, message: str = "Authentication failed", correlation_id: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="AUTH_FAILED",
            correlation_id=correlation_id,
            user_message="Authentication failed. Please sign in again."
        )


class SignatureVerificationError(AuthError):
    """Queue callback signature missing or invalid."""

    def __init__(self, reason: str, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Callback signature rejected: {reason}",
            error_code="INVALID_SIGNATURE",
            correlation_id=correlation_id,
            details={"reason": reason},
            user_message="Invalid signature"
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(ServiceError):
    """Input validation failed."""

    def __init__(
        self,
        field: str,
        message: str,
        correlation_id: Optional[str] = None,
        validation_errors: Optional[List[Dict[str, str]]] = None,
        error_code: str = "VALIDATION_ERROR",
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        http_status: HTTPStatus = HTTPStatus.BAD_REQUEST
    ):
        merged = {"field": field, "validation_message": message}
        if validation_errors:
            merged["validation_errors"] = validation_errors
        if details:
            merged.update(details)

        super().__init__(
            message=f"Validation failed for {field}: {message}",
            error_code=error_code,
            correlation_id=correlation_id,
            details=merged,
            user_message=user_message or f"Invalid {field}: {message}",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            http_status=http_status
        )


class InvalidFileTypeError(ValidationError):
    """Invalid file type or format."""

    def __init__(
        self,
        file_name: str,
        file_type: str,
        allowed_types: List[str],
        correlation_id: Optional[str] = None
    ):
        super().__init__(
            field="file",
            message=f"Invalid file type '{file_type}' for '{file_name}'. Allowed types: {allowed_types}",
            correlation_id=correlation_id,
            error_code="INVALID_FILE_TYPE",
            details={"file_name": file_name, "file_type": file_type, "allowed_types": allowed_types},
            user_message="Unsupported file type. Upload a PDF, PNG, JPG or WEBP."
        )


class FileSizeLimitError(ValidationError):
    """File size outside the accepted bounds."""

    def __init__(
        self,
        file_name: str,
        file_size: int,
        max_size: int,
        correlation_id: Optional[str] = None
    ):
        max_size_mb = max_size / (1024 * 1024)
        file_size_mb = file_size / (1024 * 1024)

        if file_size <= 0:
            message = f"File '{file_name}' is empty"
            user_message = "The uploaded file is empty."
            http_status = HTTPStatus.BAD_REQUEST
        else:
            message = f"File '{file_name}' size {file_size} bytes exceeds limit of {max_size} bytes"
            user_message = f"File size ({file_size_mb:.1f}MB) exceeds the maximum allowed size of {max_size_mb:.1f}MB."
            http_status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE

        super().__init__(
            field="file",
            message=message,
            correlation_id=correlation_id,
            error_code="FILE_SIZE_LIMIT_EXCEEDED",
            details={"file_name": file_name, "file_size": file_size, "max_size": max_size},
            user_message=user_message,
            http_status=http_status
        )


# =============================================================================
# CONTENT ERRORS (unusable documents, never retried)
# =============================================================================

class ContentError(ServiceError):
    """Base class for document content that cannot be processed."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONTENT_ERROR",
        correlation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            correlation_id=correlation_id,
            details=details,
            user_message=user_message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.CONTENT,
            http_status=HTTPStatus.UNPROCESSABLE_ENTITY
        )


class ImageOnlyPdfError(ContentError):
    """PDF has (almost) no extractable text."""

    def __init__(self, text_length: int, min_length: int, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"PDF looks image-only: {text_length} characters of text, minimum is {min_length}",
            error_code="IMAGE_ONLY_PDF",
            correlation_id=correlation_id,
            details={"text_length": text_length, "min_length": min_length},
            user_message="PDF looks image-only. Please upload a PNG or JPG version."
        )


class UnreadableDocumentError(ContentError):
    """Document bytes could not be parsed as the declared type."""

    def __init__(self, mime_type: str, reason: str, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Could not read {mime_type} document: {reason}",
            error_code="UNREADABLE_DOCUMENT",
            correlation_id=correlation_id,
            details={"mime_type": mime_type, "reason": reason},
            user_message="The document could not be read. Please check the file and upload it again."
        )


class UnsupportedDocumentTypeError(ContentError):
    """Stored document has a MIME type the pipeline cannot extract."""

    def __init__(self, mime_type: str, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Unsupported document type: {mime_type}",
            error_code="UNSUPPORTED_DOCUMENT_TYPE",
            correlation_id=correlation_id,
            details={"mime_type": mime_type},
            user_message="Unsupported file type. Upload a PDF, PNG, or JPG."
        )


# =============================================================================
# UPSTREAM & SCHEMA ERRORS (external dependencies)
# =============================================================================

class UpstreamError(ServiceError):
    """A dependency call itself failed (network, rate limit, outage)."""

    def __init__(
        self,
        provider: str,
        operation: str,
        reason: str,
        correlation_id: Optional[str] = None,
        error_code: str = "UPSTREAM_ERROR",
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {"provider": provider, "operation": operation, "reason": reason}
        if details:
            merged.update(details)
        super().__init__(
            message=f"{provider} {operation} failed: {reason}",
            error_code=error_code,
            correlation_id=correlation_id,
            details=merged,
            user_message=user_message or "An external service failed. Please try again later.",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=HTTPStatus.BAD_GATEWAY
        )
        self.provider = provider
        self.operation = operation
        self.reason = reason


class BlobStorageError(UpstreamError):
    """Blob store read or write failed."""

    def __init__(self, operation: str, path: str, reason: str, correlation_id: Optional[str] = None):
        super().__init__(
            provider="minio",
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
            error_code="BLOB_STORAGE_ERROR",
            details={"path": path},
            user_message="File storage is unavailable. Please try again later."
        )


class BlobNotFoundError(UpstreamError):
    """Stored document is missing from the blob store."""

    def __init__(self, path: str, correlation_id: Optional[str] = None):
        super().__init__(
            provider="minio",
            operation="get",
            reason=f"object not found: {path}",
            correlation_id=correlation_id,
            error_code="BLOB_NOT_FOUND",
            details={"path": path},
            user_message="The uploaded document could not be found in storage."
        )


class QueuePublishError(UpstreamError):
    """Publishing the processing message to the queue failed."""

    def __init__(self, reason: str, job_id: Optional[str] = None, correlation_id: Optional[str] = None):
        super().__init__(
            provider="qstash",
            operation="publish",
            reason=reason,
            correlation_id=correlation_id,
            error_code="QUEUE_PUBLISH_FAILED",
            details={"job_id": job_id},
            user_message="The document was stored but could not be queued for processing."
        )
        self.job_id = job_id


class SchemaError(ServiceError):
    """Model call succeeded but returned content that does not validate."""

    def __init__(
        self,
        artifact: str,
        reason: str,
        raw_excerpt: Optional[str] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(
            message=f"{artifact} output did not match schema: {reason}",
            error_code="SCHEMA_ERROR",
            correlation_id=correlation_id,
            details={"artifact": artifact, "reason": reason, "raw_excerpt": raw_excerpt},
            user_message="The document could not be interpreted. Please try again later.",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=HTTPStatus.BAD_GATEWAY
        )
        self.artifact = artifact
        self.reason = reason


# =============================================================================
# BUSINESS DOMAIN ERRORS
# =============================================================================

class BusinessError(ServiceError):
    """Base class for business domain errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        correlation_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.BUSINESS_RULE,
        http_status: HTTPStatus = HTTPStatus.BAD_REQUEST
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            correlation_id=correlation_id,
            details=details,
            user_message=user_message,
            severity=severity,
            category=category,
            http_status=http_status
        )


class ResourceNotFoundError(BusinessError):
    """Base class for resource not found errors."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Union[int, str],
        user_id: Optional[str] = None,
        correlation_id: Optional[str] = None
    ):
        details = {"resource_type": resource_type, "resource_id": resource_id}
        if user_id is not None:
            details["user_id"] = user_id

        super().__init__(
            message=f"{resource_type} not found or access denied",
            error_code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            correlation_id=correlation_id,
            details=details,
            user_message=f"{resource_type} not found or you don't have permission to access it.",
            category=ErrorCategory.RESOURCE_NOT_FOUND,
            http_status=HTTPStatus.NOT_FOUND
        )


class JobNotFoundError(ResourceNotFoundError):
    def __init__(self, job_id: str, user_id: Optional[str] = None, correlation_id: Optional[str] = None):
        super().__init__("Job", job_id, user_id, correlation_id)


class PlanningDocumentNotFoundError(ResourceNotFoundError):
    def __init__(self, document_id: str, user_id: Optional[str] = None, correlation_id: Optional[str] = None):
        super().__init__("Planning document", document_id, user_id, correlation_id)


class AnalysisNotReadyError(BusinessError):
    """Analysis has not been produced yet; clients should keep polling."""

    def __init__(self, document_id: str, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Analysis for planning document {document_id} is not available yet",
            error_code="ANALYSIS_NOT_READY",
            correlation_id=correlation_id,
            details={"planning_document_id": document_id, "analysis_status": "pending"},
            user_message="Planning analysis is still being generated.",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.RESOURCE_NOT_FOUND,
            http_status=HTTPStatus.NOT_FOUND
        )


class AnalysisFailedError(BusinessError):
    """Analysis permanently failed; it will never exist for this document."""

    def __init__(self, document_id: str, reason: Optional[str] = None, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Analysis for planning document {document_id} failed: {reason}",
            error_code="ANALYSIS_FAILED",
            correlation_id=correlation_id,
            details={"planning_document_id": document_id, "analysis_status": "error", "reason": reason},
            user_message="Planning analysis could not be generated for this document.",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.RESOURCE_NOT_FOUND,
            http_status=HTTPStatus.GONE
        )


class InvalidJobTransitionError(BusinessError):
    """Requested status change would move a job backwards."""

    def __init__(self, job_id: str, from_status: str, to_status: str, correlation_id: Optional[str] = None):
        super().__init__(
            message=f"Job {job_id} cannot move from {from_status} to {to_status}",
            error_code="INVALID_JOB_TRANSITION",
            correlation_id=correlation_id,
            details={"job_id": job_id, "from_status": from_status, "to_status": to_status},
            category=ErrorCategory.CONFLICT,
            http_status=HTTPStatus.CONFLICT
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def create_error_response(
    error: ServiceError,
    include_details: bool = False
) -> Dict[str, Any]:
    """Create standardized error response dictionary.

    Args:
        error: ServiceError instance
        include_details: Whether to include sensitive details

    Returns:
        Standardized error response dictionary
    """
    response = error.to_dict(include_sensitive=include_details)
    # Non-sensitive context that polling clients branch on
    for key in ("job_id", "analysis_status"):
        if error.details.get(key) is not None:
            response[key] = error.details[key]
    return response
