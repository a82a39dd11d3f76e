from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from app.db.models.request_log import RequestLog

_INBOUND_FIELDS = (
	"connection_type", "method", "path_template", "raw_path", "route_name",
	"client_ip", "user_agent", "auth_type", "user_id", "job_id",
)
_OUTBOUND_FIELDS = ("connection_type", "provider", "target", "error_code", "job_id")


class RequestLogRepository:
	"""Telemetry inserts. String values are clipped to their column length."""

	def __init__(self, db: Session):
		self.db = db

	def insert_inbound(self, payload: Dict[str, Any]) -> None:
		self._insert("inbound", _INBOUND_FIELDS, payload)

	def insert_outbound(self, payload: Dict[str, Any]) -> None:
		payload = {"connection_type": "sdk", **payload}
		self._insert("outbound", _OUTBOUND_FIELDS, payload)

	def _insert(self, direction: str, fields: tuple, payload: Dict[str, Any]) -> None:
		values = {name: self._clip(name, payload.get(name)) for name in fields}
		log = RequestLog(
			direction=direction,
			correlation_id=self._clip("correlation_id", payload.get("correlation_id")) or "unknown",
			status_code=payload.get("status_code"),
			duration_ms=int(payload.get("duration_ms", 0)),
			**values,
		)
		self.db.add(log)
		self.db.commit()

	@staticmethod
	def _clip(column: str, value: Optional[Any]) -> Optional[str]:
		if value is None:
			return None
		length = RequestLog.__table__.columns[column].type.length
		return str(value)[:length]
