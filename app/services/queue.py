"""Durable queue client: publish processing messages and verify callbacks.

The queue (QStash-compatible) delivers at least once and retries on non-2xx
answers. Publishing happens once per upload; the queue owns all retries.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

import httpx
from jose import JWTError, jwt

from app.core.config import settings
from app.core.observability import log_outbound_call
from app.schemas.job import ProcessingFocus
from app.services.base import BaseService
from app.services.exceptions import QueuePublishError, SignatureVerificationError

SIGNATURE_ISSUER = "Upstash"


def body_digest(body: bytes) -> str:
	"""Unpadded base64url SHA-256, the form carried in the signature's body claim."""
	digest = hashlib.sha256(body).digest()
	return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class QueuePublisher(BaseService):
	def __init__(self, client: Optional[httpx.Client] = None, correlation_id: Optional[str] = None):
		super().__init__(correlation_id)
		self._client = client

	def publish(self, job_id: str, focus: Optional[ProcessingFocus] = None, destination: Optional[str] = None) -> Optional[str]:
		"""Publish ``{"jobId", "focus"}`` for delivery to the process callback.

		Returns:
			The queue's message id, if it returned one

		Raises:
			QueuePublishError: On missing configuration, transport failure or non-2xx
		"""
		destination = destination or settings.PROCESS_DOCUMENT_URL
		if not destination or not settings.QSTASH_TOKEN:
			raise QueuePublishError("queue is not configured", job_id, self.correlation_id)

		url = f"{settings.QSTASH_URL.rstrip('/')}/v2/publish/{destination}"
		headers = {
			"Authorization": f"Bearer {settings.QSTASH_TOKEN}",
			"Content-Type": "application/json",
			"Upstash-Retries": str(settings.QUEUE_RETRIES),
		}
		if self.correlation_id:
			headers["Upstash-Forward-X-Correlation-ID"] = self.correlation_id
		body = {"jobId": job_id, "focus": focus.value if focus else None}

		self.log_operation("queue_publish_attempt", job_id=job_id, destination=destination)
		try:
			response = log_outbound_call(
				"qstash", destination, "publish", self.correlation_id,
				lambda: self._post(url, headers, body),
				job_id=job_id,
			)
		except httpx.HTTPError as e:
			raise QueuePublishError(f"{type(e).__name__}: {e}", job_id, self.correlation_id) from e

		if response.status_code >= 300:
			raise QueuePublishError(
				f"queue answered {response.status_code}: {response.text[:200]}", job_id, self.correlation_id
			)

		message_id = None
		try:
			message_id = response.json().get("messageId")
		except ValueError:
			self.logger.warning(
				"Queue publish response was not JSON",
				extra={"correlation_id": self.correlation_id, "job_id": job_id},
			)
		self.log_operation("queue_publish_success", job_id=job_id, message_id=message_id)
		return message_id

	def _post(self, url: str, headers: dict, body: dict) -> httpx.Response:
		if self._client is not None:
			return self._client.post(url, headers=headers, json=body)
		with httpx.Client(timeout=settings.QUEUE_TIMEOUT_SECONDS) as client:
			return client.post(url, headers=headers, json=body)


class CallbackSignatureVerifier(BaseService):
	"""Checks the ``Upstash-Signature`` JWT against the current and next keys."""

	def __init__(
		self,
		signing_keys: Optional[list[str]] = None,
		expected_url: Optional[str] = None,
		correlation_id: Optional[str] = None,
		require_subject: bool = False,
	):
		super().__init__(correlation_id)
		self.require_subject = require_subject
		self.signing_keys = signing_keys if signing_keys is not None else settings.QSTASH_SIGNING_KEYS
		self.expected_url = expected_url if expected_url is not None else settings.PROCESS_DOCUMENT_URL

	def verify(self, signature: Optional[str], body: bytes) -> dict:
		"""Return the verified claims.

		Raises:
			SignatureVerificationError: If no key validates the token or a claim is wrong
		"""
		if not signature:
			raise SignatureVerificationError("missing signature", self.correlation_id)
		if not self.signing_keys:
			raise SignatureVerificationError("no signing keys configured", self.correlation_id)
		if self.require_subject and not self.expected_url:
			raise SignatureVerificationError("callback url is not configured", self.correlation_id)

		last_error = "invalid signature"
		for key in self.signing_keys:
			try:
				claims = jwt.decode(
					signature,
					key,
					algorithms=["HS256"],
					issuer=SIGNATURE_ISSUER,
					options={"verify_aud": False},
				)
			except JWTError as e:
				last_error = str(e) or type(e).__name__
				continue
			self._check_claims(claims, body)
			return claims

		self.logger.warning(
			"Callback signature rejected",
			extra={"correlation_id": self.correlation_id, "reason": last_error},
		)
		raise SignatureVerificationError(last_error, self.correlation_id)

	def _check_claims(self, claims: dict, body: bytes) -> None:
		if self.expected_url and claims.get("sub") != self.expected_url:
			raise SignatureVerificationError("subject does not match callback url", self.correlation_id)
		claimed = (claims.get("body") or "").rstrip("=")
		if claimed != body_digest(body):
			raise SignatureVerificationError("body hash mismatch", self.correlation_id)
