from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from fastapi import APIRouter, Depends


# Shared default error responses for all routers; bodies are {"detail": ServiceError.to_dict()}
DEFAULT_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"description": "Bad Request"},
    401: {"description": "Unauthorized"},
    404: {"description": "Not Found"},
    500: {"description": "Internal Server Error"},
}

UPLOAD_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    413: {"description": "Upload too large"},
    502: {"description": "Blob store or queue unavailable"},
}

ANALYSIS_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    404: {"description": "Document not found, or analysis not ready yet"},
    410: {"description": "Analysis failed permanently"},
}


def create_router(
    *,
    name: Optional[str] = None,
    dependencies: Optional[Sequence[Depends]] = None,
    default_responses: Optional[Dict[int, Dict[str, Any]]] = None,
) -> APIRouter:
    """Create a pre-configured APIRouter with standardized defaults.

    Args:
        name: Optional logical name for the router; useful for debugging/metrics.
        dependencies: Optional dependencies applied to all routes in the router.
        default_responses: Optional map to override default error responses.

    Returns:
        Configured APIRouter instance.
    """
    router = APIRouter(
        dependencies=list(dependencies) if dependencies else None,
        responses=(default_responses or DEFAULT_ERROR_RESPONSES),
    )
    if name:
        setattr(router, "name", name)
    return router
