import httpx

from conftest import deliver, upload_pdf
from app.db.models.request_log import RequestLog
from app.services.queue import QueuePublisher


def test_correlation_id_header_present_on_404(client, db_session):
    resp = client.get("/this-path-does-not-exist")
    assert resp.status_code == 404
    assert "X-Correlation-ID" in resp.headers


def test_provided_correlation_id_is_echoed_and_recorded(client, db_session):
    resp = client.get("/health", headers={"X-Correlation-ID": "trace-abc"})
    assert resp.status_code == 200
    assert resp.headers["X-Correlation-ID"] == "trace-abc"

    db_session.expire_all()
    log = db_session.query(RequestLog).filter_by(correlation_id="trace-abc").one()
    assert log.direction == "inbound"
    assert log.method == "GET"
    assert log.raw_path == "/health"
    assert log.status_code == 200
    assert log.auth_type == "none"


def test_error_body_carries_correlation_id(client, db_session):
    resp = client.get("/jobs/missing", headers={"X-Correlation-ID": "trace-404"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["correlation_id"] == "trace-404"


def test_queue_callback_is_logged_as_signature_auth(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]
    resp = deliver(client, job_id)
    correlation_id = resp.headers["X-Correlation-ID"]

    db_session.expire_all()
    log = db_session.query(RequestLog).filter_by(correlation_id=correlation_id, direction="inbound").one()
    assert log.auth_type == "signature"
    assert log.raw_path == "/documents/process"
    assert log.job_id == job_id


def test_upload_and_callback_rows_carry_job_id(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]
    deliver(client, job_id)

    db_session.expire_all()
    paths = {log.raw_path for log in db_session.query(RequestLog).filter_by(job_id=job_id, direction="inbound")}
    assert paths == {"/documents/upload", "/documents/process"}


def test_queue_publish_is_logged_as_outbound_call(db_session):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(201, json={"messageId": "m-1"})))
    QueuePublisher(client=client, correlation_id="trace-out").publish("job-7")

    log = db_session.query(RequestLog).filter_by(direction="outbound", correlation_id="trace-out").one()
    assert log.provider == "qstash"
    assert log.job_id == "job-7"
    assert log.target.startswith("publish:")
    assert log.error_code is None
