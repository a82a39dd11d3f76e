from datetime import timedelta

from conftest import REAP_URL, sign, upload_pdf
from app.db.base_class import utcnow
from app.db.models.document_job import DocumentJob
from app.core.config import settings


def _age_job(db_session, job_id, minutes, status="processing"):
    job = db_session.get(DocumentJob, job_id)
    job.status = status
    job.progress = 35
    job.updated_at = utcnow() - timedelta(minutes=minutes)
    db_session.commit()


def _reap(client, key=None):
    body = b"{}"
    signature = sign(body, url=REAP_URL) if key is None else sign(body, key=key)
    return client.post("/documents/jobs/reap", content=body, headers={"Upstash-Signature": signature})


def test_reaper_fails_only_stale_processing_jobs(client, db_session):
    stale = upload_pdf(client).json()["jobId"]
    fresh = upload_pdf(client).json()["jobId"]
    queued = upload_pdf(client).json()["jobId"]
    _age_job(db_session, stale, settings.REAPER_STALE_MINUTES + 5)
    _age_job(db_session, fresh, 1)

    resp = _reap(client)
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"failedJobIds": [stale]}

    db_session.expire_all()
    job = db_session.get(DocumentJob, stale)
    assert job.status == "failed"
    assert job.error_code == "PROCESSING_TIMEOUT"
    assert job.progress == 100
    assert job.progress_message == "Processing failed"
    assert job.completed_at is not None
    assert db_session.get(DocumentJob, fresh).status == "processing"
    assert db_session.get(DocumentJob, queued).status == "queued"


def test_reaper_leaves_terminal_jobs_alone(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]
    _age_job(db_session, job_id, settings.REAPER_STALE_MINUTES + 5, status="completed")

    assert _reap(client).json() == {"failedJobIds": []}
    db_session.expire_all()
    assert db_session.get(DocumentJob, job_id).status == "completed"


def test_reaper_requires_signature(client, db_session):
    resp = client.post("/documents/jobs/reap", content=b"{}")
    assert resp.status_code == 401

    resp = _reap(client, key="wrong-key")
    assert resp.status_code == 401


def test_reaper_rejects_token_signed_for_process_callback(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]
    _age_job(db_session, job_id, settings.REAPER_STALE_MINUTES + 5)

    body = b"{}"
    resp = client.post("/documents/jobs/reap", content=body, headers={"Upstash-Signature": sign(body)})
    assert resp.status_code == 401

    db_session.expire_all()
    assert db_session.get(DocumentJob, job_id).status == "processing"


def test_reaper_rejects_every_token_when_url_unset(client, db_session, monkeypatch):
    monkeypatch.setattr(settings, "REAP_JOBS_URL", None)
    job_id = upload_pdf(client).json()["jobId"]
    _age_job(db_session, job_id, settings.REAPER_STALE_MINUTES + 5)

    resp = _reap(client)
    assert resp.status_code == 401
    assert resp.json()["detail"]["error_code"] == "INVALID_SIGNATURE"

    db_session.expire_all()
    assert db_session.get(DocumentJob, job_id).status == "processing"
