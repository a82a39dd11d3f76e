from fastapi import Depends, WebSocket, WebSocketDisconnect
import asyncio
from app.api.router import create_router
from sqlalchemy.orm import Session
from app.api.dependencies.auth import get_current_user
from app.api.dependencies.database import get_db
from app.api.dependencies.services import get_status_reader
from app.core.security import decode_access_token
from app.repositories.document_job import DocumentJobRepository
from app.schemas.auth import CurrentUser
from app.schemas.job import JobRead, JobStatus
from app.services.status_reader import StatusReaderService


router = create_router(name="jobs")

POLL_INTERVAL_SECONDS = 1.0


@router.get("/{job_id}", response_model=JobRead)
def get_job_status(
	job_id: str,
	current_user: CurrentUser = Depends(get_current_user),
	status_reader: StatusReaderService = Depends(get_status_reader),
):
	return status_reader.get_job(job_id, current_user.id)


@router.websocket("/ws/{job_id}")
async def job_status_ws(
	websocket: WebSocket,
	job_id: str,
	db: Session = Depends(get_db)
):
	try:
		await websocket.accept()
		# Simple token auth: query param ?token=Bearer <jwt> or Authorization header
		token = websocket.query_params.get("token") or websocket.headers.get("authorization")
		user_id = decode_access_token(token) if token else None
		if not user_id:
			await websocket.send_json({"event": "unauthorized"})
			await websocket.close(code=4401)
			return
		# Built locally; HTTP-only dependencies are unavailable on websockets
		job_repo = DocumentJobRepository(db=db)
		last_payload = None
		while True:
			# Ensure session doesn't serve stale cached objects
			db.expire_all()
			job = job_repo.get_by_id_and_user(job_id, user_id)
			if not job:
				await websocket.send_json({"event": "not_found"})
				await websocket.close()
				return
			payload = JobRead.model_validate(job).model_dump(mode="json")
			payload.pop("updated_at", None)
			if payload != last_payload:
				await websocket.send_json({"event": "update", "data": payload})
				last_payload = payload
			if JobStatus(job.status).is_terminal:
				await websocket.close()
				return
			await asyncio.sleep(POLL_INTERVAL_SECONDS)
	except WebSocketDisconnect:
		return
