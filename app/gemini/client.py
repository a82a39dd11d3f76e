from functools import lru_cache

from google import genai

from app.core.config import settings


@lru_cache(maxsize=1)
def get_client() -> genai.Client:
    return genai.Client(
        api_key=settings.GOOGLE_GEMINI_API_KEY,
        http_options={"timeout": settings.GEMINI_TIMEOUT_SECONDS * 1000},
    )
