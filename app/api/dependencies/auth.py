from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_access_token
from app.schemas.auth import CurrentUser
from app.services.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
	"""Resolve the caller from a bearer access token."""
	correlation_id = getattr(request.state, "correlation_id", None)
	if credentials is None:
		raise AuthenticationError("Missing bearer token", correlation_id)

	user_id = decode_access_token(credentials.credentials)
	if not user_id:
		raise AuthenticationError("Invalid or expired token", correlation_id)

	# Picked up by the request logging middleware
	request.state.user_id = user_id
	return CurrentUser(id=user_id)
