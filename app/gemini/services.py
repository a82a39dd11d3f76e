import logging
from typing import Any, Optional

from app.core.config import settings
from app.core.observability import log_outbound_call
from app.services.exceptions import UpstreamError
from .client import get_client

logger = logging.getLogger(__name__)


def get_ai_response(
    contents: Any,
    system_instruction: Optional[str] = None,
    response_schema: dict = None,
    correlation_id: Optional[str] = None,
) -> str:
    """Run one generate_content call and return the raw response text.

    Retries are owned by the queue's redelivery, so a failed call is raised
    immediately as UpstreamError.
    """
    config = {
        "response_mime_type": "application/json",
        "temperature": 0,
        **({"system_instruction": system_instruction} if system_instruction else {}),
        **({"response_schema": response_schema} if response_schema else {}),
    }

    try:
        response = log_outbound_call(
            "gemini",
            settings.GEMINI_MODEL,
            "generate_content",
            correlation_id,
            lambda: get_client().models.generate_content(
                model=settings.GEMINI_MODEL,
                contents=contents,
                config=config,
            ),
        )
    except Exception as e:
        logger.warning(
            "Gemini call failed",
            extra={"correlation_id": correlation_id, "error_type": type(e).__name__, "error": str(e)},
        )
        raise UpstreamError(
            provider="gemini",
            operation="generate_content",
            reason=str(e) or type(e).__name__,
            correlation_id=correlation_id,
        ) from e

    return response.text or ""
