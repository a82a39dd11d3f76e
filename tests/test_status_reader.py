from datetime import timedelta

from conftest import OWNER_ID, deliver, upload_pdf
from app.db.base_class import utcnow
from app.db.models.document_job import DocumentJob
from app.db.models.planning_document import PlanningDocument
from app.services.exceptions import UpstreamError


def _processed_job(client):
    job_id = upload_pdf(client).json()["jobId"]
    deliver(client, job_id)
    return job_id


def _document_id(client, job_id):
    return client.get(f"/jobs/{job_id}").json()["planning_document_id"]


def _in_flight_document(db_session, job_status="processing", analysis_status="pending", owner=OWNER_ID):
    job = DocumentJob(
        user_id=owner,
        site_id="site-1",
        storage_path="site-1/x-plan.pdf",
        file_name="plan.pdf",
        mime_type="application/pdf",
        status=job_status,
        progress=70,
        analysis_status=analysis_status,
    )
    db_session.add(job)
    db_session.flush()
    document = PlanningDocument(
        job_id=job.id,
        user_id=owner,
        site_id="site-1",
        storage_path=job.storage_path,
        file_name=job.file_name,
        summary_json={"site": {"name": "Plot 4"}},
    )
    db_session.add(document)
    db_session.flush()
    job.planning_document_id = document.id
    db_session.commit()
    return job.id, document.id


def test_job_status_for_owner(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]

    resp = client.get(f"/jobs/{job_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == job_id
    assert body["status"] == "queued"
    assert body["progress"] == 0
    assert body["progress_message"] == "Queued for processing"
    assert body["analysis_status"] == "pending"
    assert "storage_path" not in body


def test_job_of_another_user_is_not_found(client, db_session):
    job_id = upload_pdf(client).json()["jobId"]
    job = db_session.get(DocumentJob, job_id)
    job.user_id = "someone-else"
    db_session.commit()

    resp = client.get(f"/jobs/{job_id}")
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "JOB_NOT_FOUND"


def test_unknown_job_is_not_found(client, db_session):
    assert client.get("/jobs/does-not-exist").status_code == 404


def test_summary_is_served_in_camel_case(client, db_session):
    document_id = _document_id(client, _processed_job(client))

    resp = client.get(f"/planning-documents/{document_id}/summary")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == document_id
    assert body["file_name"] == "application.pdf"
    assert body["summary"]["site"]["localAuthority"] == "Exampleton DC"
    assert body["summary"]["fees"]["planningAuthorityFee"] == {
        "amount": 2688.0,
        "currency": "GBP",
        "payer": "Applicant",
        "description": None,
    }
    assert body["summary"]["meta"]["sourceFileName"] == "application.pdf"


def test_summary_of_another_user_is_not_found(client, db_session):
    _, document_id = _in_flight_document(db_session, owner="someone-else")
    resp = client.get(f"/planning-documents/{document_id}/summary")
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "PLANNING_DOCUMENT_NOT_FOUND"


def test_analysis_ready(client, db_session):
    document_id = _document_id(client, _processed_job(client))

    resp = client.get(f"/planning-documents/{document_id}/analysis")
    assert resp.status_code == 200
    body = resp.json()
    assert body["planning_document_id"] == document_id
    assert body["analysis"]["riskLevel"] == "MEDIUM"
    assert body["analysis"]["keyIssues"] == ["Highways access"]
    assert body["analysis"]["timelineNotes"] is None


def test_analysis_still_pending_is_404_not_ready(client, db_session):
    _, document_id = _in_flight_document(db_session)

    resp = client.get(f"/planning-documents/{document_id}/analysis")
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "ANALYSIS_NOT_READY"


def test_failed_analysis_is_410(client, db_session, model):
    model.analysis = UpstreamError("gemini", "generate_content", "503")
    document_id = _document_id(client, _processed_job(client))

    resp = client.get(f"/planning-documents/{document_id}/analysis")
    assert resp.status_code == 410
    assert resp.json()["detail"]["error_code"] == "ANALYSIS_FAILED"


def test_terminal_job_without_analysis_is_410(client, db_session):
    _, document_id = _in_flight_document(db_session, job_status="failed")

    resp = client.get(f"/planning-documents/{document_id}/analysis")
    assert resp.status_code == 410


def test_list_documents_for_site(client, db_session):
    _processed_job(client)
    _in_flight_document(db_session)
    db_session.add(PlanningDocument(
        user_id=OWNER_ID, site_id="site-1", storage_path="p", file_name="bare.pdf", summary_json={},
        created_at=utcnow() - timedelta(days=1),
    ))
    db_session.add(PlanningDocument(
        user_id=OWNER_ID, site_id="site-2", storage_path="p", file_name="other.pdf", summary_json={},
    ))
    db_session.commit()

    resp = client.get("/planning-documents", params={"site_id": "site-1"})
    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 3
    titles = {item["title"] for item in items}
    assert titles == {"Permission in Principle", "Plot 4", "Planning document"}
    assert items[-1]["title"] == "Planning document"
    assert items[-1]["route_label"] is None
    pip = next(item for item in items if item["title"] == "Permission in Principle")
    assert pip["route_label"] == "PIP"


def test_list_requires_site_id(client, db_session):
    assert client.get("/planning-documents").status_code == 422


OLDER_SUMMARY = {
    "site": {"name": None, "address": "2 Station Road", "localAuthority": None, "clientName": None},
    "proposal": {"description": None, "route": ["Full"], "dwellingsMin": None, "dwellingsMax": None, "isHousingLed": False},
    "process": {"stage": None, "steps": ["Pre-app", "Submit", "Validate", "Decide"]},
    "fees": {
        "planningAuthorityFee": {"amount": 578.5, "currency": "GBP", "payer": None, "description": None},
        "agentFee": {"amount": None, "currency": "GBP", "vatExcluded": True, "description": None},
    },
    "documentsRequired": [],
    "meta": {"documentTitle": None, "documentDate": None, "sourceFileName": "older.pdf"},
}


def _stored_document(db_session, summary, site_id="site-1", owner=OWNER_ID, age_days=1):
    document = PlanningDocument(
        user_id=owner, site_id=site_id, storage_path="p", file_name="older.pdf", summary_json=summary,
        created_at=utcnow() - timedelta(days=age_days),
    )
    db_session.add(document)
    db_session.commit()
    return document.id


def test_compare_site_documents_newest_first(client, db_session):
    newest = _document_id(client, _processed_job(client))
    older = _stored_document(db_session, OLDER_SUMMARY)
    _stored_document(db_session, OLDER_SUMMARY, site_id="site-2")

    resp = client.get("/planning-documents/compare", params={"site_id": "site-1"})
    assert resp.status_code == 200, resp.text
    body = resp.json()

    assert [d["document_id"] for d in body["documents"]] == [newest, older]
    assert body["documents"][0] == {
        "document_id": newest,
        "title": "Permission in Principle",
        "route_label": "PIP",
        "site_address": "Mill Lane, Exampleton",
        "proposal_summary": "Erection of 9 dwellings · 1–9 dwellings · Local authority: Exampleton DC",
        "phase_one_fee_summary": "Council: £2,688 · Agent: £3,250 + VAT",
    }
    assert body["documents"][1]["title"] == "Planning document"
    assert body["documents"][1]["proposal_summary"] is None
    assert body["documents"][1]["phase_one_fee_summary"] == "Council: £578.50"

    rows = {row["label"]: row["values"] for row in body["comparison_rows"]}
    assert list(rows) == ["Route type", "Dwellings", "Phase 1 council fee", "Phase 1 agent fee", "Key outputs"]
    assert rows["Route type"] == ["PIP", "Full"]
    assert rows["Dwellings"] == ["1–9", None]
    assert rows["Phase 1 council fee"] == ["£2,688", "£578.50"]
    assert rows["Phase 1 agent fee"] == ["£3,250 + VAT", None]
    assert rows["Key outputs"] == ["Validate", "Pre-app, Submit, Validate"]


def test_compare_explicit_ids_skips_other_users_documents(client, db_session):
    mine = _stored_document(db_session, OLDER_SUMMARY, site_id="site-7")
    theirs = _stored_document(db_session, OLDER_SUMMARY, owner="someone-else")

    resp = client.get("/planning-documents/compare", params={"document_ids": f" {mine} , {theirs},"})
    assert resp.status_code == 200, resp.text
    assert [d["document_id"] for d in resp.json()["documents"]] == [mine]


def test_compare_requires_a_filter(client, db_session):
    resp = client.get("/planning-documents/compare")
    assert resp.status_code == 400
    assert resp.json()["detail"]["error_code"] == "VALIDATION_ERROR"

    resp = client.get("/planning-documents/compare", params={"document_ids": " , "})
    assert resp.status_code == 400


def test_compare_with_no_matches_is_404(client, db_session):
    resp = client.get("/planning-documents/compare", params={"site_id": "empty-site"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "PLANNING_DOCUMENT_NOT_FOUND"


def test_summary_view_is_the_default(client, db_session):
    document_id = _document_id(client, _processed_job(client))

    resp = client.get(f"/planning-documents/{document_id}/view")
    assert resp.status_code == 200, resp.text
    assert resp.json() == {
        "title": "Land at Mill Lane",
        "bullets": [
            "Site: Mill Lane, Exampleton",
            "Proposal: Erection of 9 dwellings",
            "Dwellings: 1–9",
            "Local authority: Exampleton DC",
        ],
    }


def test_summary_view_falls_back_to_address_and_skips_unknowns(client, db_session):
    document_id = _stored_document(db_session, OLDER_SUMMARY)

    resp = client.get(f"/planning-documents/{document_id}/view", params={"view_type": "summary"})
    assert resp.json() == {"title": "2 Station Road", "bullets": ["Site: 2 Station Road"]}


def test_process_and_fees_views(client, db_session):
    document_id = _document_id(client, _processed_job(client))

    process = client.get(f"/planning-documents/{document_id}/view", params={"view_type": "process"}).json()
    assert process == {"stage": "Submission", "steps": ["Validate"]}

    fees = client.get(f"/planning-documents/{document_id}/view", params={"view_type": "fees"}).json()
    assert set(fees) == {"planningAuthorityFee", "agentFee"}
    assert fees["planningAuthorityFee"]["amount"] == 2688.0
    assert fees["agentFee"]["vatExcluded"] is True


def test_analysis_view_follows_analysis_readiness(client, db_session):
    document_id = _document_id(client, _processed_job(client))
    resp = client.get(f"/planning-documents/{document_id}/view", params={"view_type": "analysis"})
    assert resp.status_code == 200
    assert resp.json()["riskLevel"] == "MEDIUM"

    _, pending_id = _in_flight_document(db_session)
    resp = client.get(f"/planning-documents/{pending_id}/view", params={"view_type": "analysis"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "ANALYSIS_NOT_READY"


def test_unknown_view_type_is_400(client, db_session):
    document_id = _document_id(client, _processed_job(client))
    resp = client.get(f"/planning-documents/{document_id}/view", params={"view_type": "timeline"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["error_code"] == "VALIDATION_ERROR"


def test_view_with_mismatched_site_is_404(client, db_session):
    document_id = _document_id(client, _processed_job(client))

    resp = client.get(f"/planning-documents/{document_id}/view", params={"site_id": "site-2"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["error_code"] == "PLANNING_DOCUMENT_NOT_FOUND"

    resp = client.get(f"/planning-documents/{document_id}/view", params={"site_id": "site-1"})
    assert resp.status_code == 200
