from __future__ import annotations

import logging
import time
import uuid
from random import random
from typing import Callable, Optional, Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.background import BackgroundTask

from app.core.config import settings
from app.db.session import SessionLocal
from app.repositories.request_log import RequestLogRepository


logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
	logging.basicConfig(
		level=(level or settings.LOG_LEVEL).upper(),
		format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
	)


def generate_correlation_id(existing: Optional[str]) -> str:
	if existing and existing.strip():
		return existing.strip()[:64]
	return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Middleware to log inbound HTTP requests with correlation IDs."""

	async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
		correlation_id = generate_correlation_id(request.headers.get("X-Correlation-ID"))
		setattr(request.state, "correlation_id", correlation_id)

		if not settings.ENABLE_REQUEST_LOGGING:
			response = await call_next(request)
			response.headers["X-Correlation-ID"] = correlation_id
			return response

		sampled_out = (settings.LOG_SAMPLE_RATE < 1.0) and (random() > float(settings.LOG_SAMPLE_RATE))

		start_ns = time.monotonic_ns()
		response = await call_next(request)
		duration_ms = int((time.monotonic_ns() - start_ns) / 1_000_000)

		response.headers["X-Correlation-ID"] = correlation_id
		if not sampled_out:
			payload = _build_inbound_payload(request, correlation_id, response.status_code, duration_ms)
			response.background = _chain_background(response.background, BackgroundTask(_insert_inbound, payload))
		return response


def _chain_background(existing: Optional[BackgroundTask], task: BackgroundTask) -> BackgroundTask:
	if existing is None:
		return task

	async def _run_both() -> None:
		await existing()
		await task()

	return BackgroundTask(_run_both)


def _build_inbound_payload(request: Request, correlation_id: str, status_code: int, duration_ms: int) -> dict:
	# Route template may be unavailable for 404 or early errors
	route = request.scope.get("route")
	path_template = getattr(route, "path", None) if route is not None else None
	endpoint = request.scope.get("endpoint")
	route_name = getattr(endpoint, "__name__", None) if endpoint is not None else None

	xff = request.headers.get("x-forwarded-for")
	client_ip = (xff.split(",")[0].strip() if xff else (request.client.host if request.client else None))

	auth_header = request.headers.get("authorization") or ""
	if request.headers.get("upstash-signature"):
		auth_type = "signature"
	elif auth_header.lower().startswith("bearer "):
		auth_type = "bearer"
	else:
		auth_type = "none"

	return {
		"correlation_id": correlation_id,
		"connection_type": "http",
		"method": request.method,
		"raw_path": request.url.path,
		"path_template": path_template or request.url.path,
		"route_name": route_name,
		"status_code": status_code,
		"duration_ms": duration_ms,
		"client_ip": client_ip,
		"user_agent": (request.headers.get("user-agent") or "")[:256],
		"auth_type": auth_type,
		"user_id": getattr(request.state, "user_id", None),
		"job_id": getattr(request.state, "job_id", None),
	}


def _persist(payload: dict, insert: Callable[[RequestLogRepository, dict], None]) -> None:
	db = None
	try:
		db = SessionLocal()
		insert(RequestLogRepository(db), payload)
	except Exception as exc:
		# Telemetry must never break the request path
		logger.debug("Request log insert failed: %s", exc)
	finally:
		if db is not None:
			db.close()


def _insert_inbound(payload: dict) -> None:
	_persist(payload, lambda repo, p: repo.insert_inbound(p))


def log_outbound_call(
	provider: str,
	target: str,
	operation: str,
	correlation_id: Optional[str],
	call: Callable[[], Any],
	job_id: Optional[str] = None,
) -> Any:
	"""Execute outbound call and record its duration.

	Args:
		provider: External provider name (e.g., gemini, minio, qstash)
		target: Target entity (e.g., model name, object key)
		operation: Operation name
		correlation_id: Correlation ID for linkage
		call: Callable that performs the operation
		job_id: Document job the call was made for, when known

	Returns:
		Result of `call()`
	"""
	if not settings.ENABLE_OUTBOUND_LOGGING:
		return call()

	start_ns = time.monotonic_ns()
	error_code: Optional[str] = None
	try:
		return call()
	except Exception as e:
		error_code = type(e).__name__
		raise
	finally:
		duration_ms = int((time.monotonic_ns() - start_ns) / 1_000_000)
		payload = {
			"correlation_id": correlation_id or str(uuid.uuid4()),
			"connection_type": "sdk",
			"provider": provider,
			"target": f"{operation}:{target}",
			"duration_ms": duration_ms,
			"error_code": error_code,
			"job_id": job_id,
		}
		_persist(payload, lambda repo, p: repo.insert_outbound(p))
