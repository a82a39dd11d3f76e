"""Extraction Adapter: turns document text or images into validated artifacts.

The adapter is pure with respect to pipeline state. It never touches the Job
Store; callers decide what a failure means for the job.

Error contract:
- UpstreamError: the model call itself failed
- SchemaError: the call succeeded but the output is not the expected JSON
- ContentError: the document bytes could not be read
"""

import io
import json
from typing import Any, Callable, Optional, Type, TypeVar

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ValidationError as PydanticValidationError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from app.core.config import settings
from app.gemini import prompts
from app.schemas.planning import PlanningDocumentAnalysis, PlanningDocumentSummary
from app.services.base import BaseService
from app.services.exceptions import SchemaError, UnreadableDocumentError

ArtifactT = TypeVar("ArtifactT", bound=BaseModel)

# generate(contents, system_instruction=..., correlation_id=...) -> raw text
GenerateFn = Callable[..., str]


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text layer of every page.

    Raises:
        UnreadableDocumentError: If the bytes are not a readable PDF
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        parts = []
        for page in reader.pages:
            parts.append(page.extract_text() or "")
    except PdfReadError as e:
        raise UnreadableDocumentError("application/pdf", str(e)) from e
    except (ValueError, KeyError, TypeError) as e:
        # pypdf surfaces some structural corruption as plain Python errors
        raise UnreadableDocumentError("application/pdf", f"{type(e).__name__}: {e}") from e
    return "\n".join(parts)


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced top-level ``{...}`` block that parses as JSON."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    candidate = text[start:index + 1]
                    try:
                        json.loads(candidate)
                        return candidate
                    except json.JSONDecodeError:
                        break
        start = text.find("{", start + 1)
    return None


def parse_model_json(
    raw: str,
    model: Type[ArtifactT],
    artifact: str,
    correlation_id: Optional[str] = None,
) -> ArtifactT:
    """Parse model output into ``model``.

    The whole trimmed text is tried first; failing that, the first JSON object
    embedded in it (models sometimes wrap output in prose or code fences).

    Raises:
        SchemaError: If no JSON object is found or it does not validate
    """
    trimmed = (raw or "").strip()
    excerpt = trimmed[:500]
    try:
        data = json.loads(trimmed)
    except json.JSONDecodeError:
        candidate = find_json_object(trimmed)
        if candidate is None:
            raise SchemaError(artifact, "model did not return valid JSON", excerpt, correlation_id)
        data = json.loads(candidate)

    if not isinstance(data, dict):
        raise SchemaError(artifact, f"expected a JSON object, got {type(data).__name__}", excerpt, correlation_id)

    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise SchemaError(artifact, str(e), excerpt, correlation_id) from e


def _default_generate(contents: Any, system_instruction: Optional[str] = None, correlation_id: Optional[str] = None) -> str:
    from app.gemini.services import get_ai_response
    return get_ai_response(contents, system_instruction=system_instruction, correlation_id=correlation_id)


class PlanningExtractionAdapter(BaseService):
    """Summary and analysis extraction over text or images."""

    def __init__(
        self,
        generate: Optional[GenerateFn] = None,
        pdf_text_extractor: Optional[Callable[[bytes], str]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(correlation_id)
        self._generate = generate or _default_generate
        self._extract_pdf_text = pdf_text_extractor or extract_pdf_text

    def pdf_text(self, data: bytes) -> str:
        try:
            return self._extract_pdf_text(data)
        except UnreadableDocumentError as e:
            e.correlation_id = self.correlation_id
            raise

    def summarize_text(self, text: str, file_name: str) -> PlanningDocumentSummary:
        prompt = prompts.create_summary_prompt(self._clip(text), file_name)
        raw = self._call(prompt, prompts.SUMMARY_SYSTEM_INSTRUCTION, "summary_text", file_name)
        return self._with_source(parse_model_json(raw, PlanningDocumentSummary, "summary", self.correlation_id), file_name)

    def summarize_image(self, image_bytes: bytes, mime_type: str, file_name: str, focus: Optional[str] = None) -> PlanningDocumentSummary:
        image = self._open_image(image_bytes, mime_type)
        prompt = prompts.create_summary_image_prompt(file_name, focus)
        raw = self._call([prompt, image], prompts.SUMMARY_SYSTEM_INSTRUCTION, "summary_image", file_name)
        return self._with_source(parse_model_json(raw, PlanningDocumentSummary, "summary", self.correlation_id), file_name)

    def analyze_text(self, text: str, file_name: str) -> PlanningDocumentAnalysis:
        prompt = prompts.create_analysis_prompt(self._clip(text), file_name)
        raw = self._call(prompt, prompts.ANALYSIS_SYSTEM_INSTRUCTION, "analysis_text", file_name)
        return parse_model_json(raw, PlanningDocumentAnalysis, "analysis", self.correlation_id)

    def analyze_image(self, image_bytes: bytes, mime_type: str, file_name: str, focus: Optional[str] = None) -> PlanningDocumentAnalysis:
        image = self._open_image(image_bytes, mime_type)
        prompt = prompts.create_analysis_image_prompt(file_name, focus)
        raw = self._call([prompt, image], prompts.ANALYSIS_SYSTEM_INSTRUCTION, "analysis_image", file_name)
        return parse_model_json(raw, PlanningDocumentAnalysis, "analysis", self.correlation_id)

    def _call(self, contents: Any, system_instruction: str, operation: str, file_name: str) -> str:
        self.log_operation(operation, file_name=file_name)
        return self._generate(contents, system_instruction=system_instruction, correlation_id=self.correlation_id)

    def _clip(self, text: str) -> str:
        limit = settings.MAX_PROMPT_CHARS
        if len(text) > limit:
            self.log_operation("prompt_text_truncated", original_length=len(text), limit=limit)
            return text[:limit]
        return text

    def _open_image(self, data: bytes, mime_type: str) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise UnreadableDocumentError(mime_type, str(e), self.correlation_id) from e
        return image

    @staticmethod
    def _with_source(summary: PlanningDocumentSummary, file_name: str) -> PlanningDocumentSummary:
        if not summary.meta.source_file_name:
            summary.meta.source_file_name = file_name
        return summary
