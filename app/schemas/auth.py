"""Authentication schemas."""

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller. Users live in the identity provider, not here."""
    id: str
