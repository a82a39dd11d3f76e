# main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.api.endpoints import documents, jobs, planning_documents
from app.core.observability import RequestLoggingMiddleware, configure_logging
from app.services.exceptions import ServiceError, create_error_response
# Import all models to ensure relationships are properly resolved
from app.db import base  # This imports all models

configure_logging()

app = FastAPI(title="Planning document pipeline")

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.correlation_id is None:
        exc.correlation_id = getattr(request.state, "correlation_id", None)
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status.value == 401 else None
    return JSONResponse(
        status_code=exc.http_status.value,
        content={"detail": create_error_response(exc)},
        headers=headers,
    )


app.include_router(documents.router, prefix="/documents", tags=["documents"])
app.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
app.include_router(planning_documents.router, prefix="/planning-documents", tags=["planning-documents"])


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}
