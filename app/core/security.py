from typing import Optional

from jose import JWTError, jwt
from app.core.config import settings


def decode_access_token(token: str) -> Optional[str]:
    """Return the subject (user id) of a valid access token, or None."""
    if token.lower().startswith("bearer "):
        token = token[len("bearer "):]
    try:
        payload = jwt.decode(token.strip(), settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") == "refresh":
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
