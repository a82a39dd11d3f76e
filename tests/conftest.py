import os
import sys
import tempfile
import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

# Ensure project root is on sys.path for 'app' imports
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# File-based SQLite so the app, background log writes and the test share state
_DB_DIR = tempfile.mkdtemp(prefix="planning-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}")
os.environ.setdefault("QSTASH_TOKEN", "test-qstash-token")
os.environ.setdefault("QSTASH_CURRENT_SIGNING_KEY", "sig_current_test_key")
os.environ.setdefault("QSTASH_NEXT_SIGNING_KEY", "sig_next_test_key")
os.environ.setdefault("PROCESS_DOCUMENT_URL", "https://api.example.test/documents/process")
os.environ.setdefault("REAP_JOBS_URL", "https://api.example.test/documents/jobs/reap")
os.environ.setdefault("SECRET_KEY", "test-secret")

from app.db.base_class import Base
from app.db import base as models_import  # noqa: F401 - ensure models are imported
from app.db.session import engine
from app.core.config import settings
from app.api.dependencies.auth import get_current_user
from app.api.dependencies.database import get_db
from app.api.dependencies.services import (
    get_extraction_adapter,
    get_file_service,
    get_queue_publisher,
)
from app.gemini import prompts
from app.schemas.auth import CurrentUser
from app.services.exceptions import BlobNotFoundError
from app.services.extraction import PlanningExtractionAdapter
from app.services.queue import body_digest

OWNER_ID = "user-1"
PROCESS_URL = os.environ["PROCESS_DOCUMENT_URL"]
REAP_URL = os.environ["REAP_JOBS_URL"]
CURRENT_KEY = os.environ["QSTASH_CURRENT_SIGNING_KEY"]
NEXT_KEY = os.environ["QSTASH_NEXT_SIGNING_KEY"]

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SUMMARY_JSON = (
    '{"site":{"name":"Land at Mill Lane","address":"Mill Lane, Exampleton","localAuthority":"Exampleton DC",'
    '"clientName":"Acme Homes"},"proposal":{"description":"Erection of 9 dwellings","route":["PIP"],'
    '"dwellingsMin":1,"dwellingsMax":9,"isHousingLed":true},"process":{"stage":"Submission","steps":["Validate"]},'
    '"fees":{"planningAuthorityFee":{"amount":"£2,688.00","currency":"GBP","payer":"Applicant","description":null},'
    '"agentFee":{"amount":3250,"currency":"GBP","vatExcluded":null,"description":"Agent fee"}},'
    '"documentsRequired":["Site location plan"],"meta":{"documentTitle":"Permission in Principle",'
    '"documentDate":"2024-05-01","sourceFileName":null}}'
)

ANALYSIS_JSON = (
    '{"headlineRisk":"Medium risk: scale acceptable but highways access needs evidence.","riskLevel":"medium",'
    '"keyIssues":["Highways access"],"policyRefs":["NPPF 11"],"recommendedActions":["Pre-app"],"timelineNotes":null}'
)

PDF_TEXT = "Permission in principle application for nine dwellings at Mill Lane. " * 3


class FakeBlobStore:
    def __init__(self):
        self.objects = {}
        self.put_error = None

    def put(self, path, data, content_type):
        if self.put_error is not None:
            raise self.put_error
        self.objects[path] = (data, content_type)
        return path

    def get(self, path):
        if path not in self.objects:
            raise BlobNotFoundError(path)
        return self.objects[path][0]


class FakePublisher:
    def __init__(self):
        self.published = []
        self.error = None

    def publish(self, job_id, focus=None):
        if self.error is not None:
            raise self.error
        self.published.append((job_id, focus))
        return f"msg-{len(self.published)}"


class FakeModel:
    """Scripted stand-in for the Gemini call; a response may be an exception to raise."""

    def __init__(self):
        self.summary = SUMMARY_JSON
        self.analysis = ANALYSIS_JSON
        self.pdf_text = PDF_TEXT
        self.calls = []
        self.contents = []

    def __call__(self, contents, system_instruction=None, correlation_id=None):
        kind = "summary" if system_instruction == prompts.SUMMARY_SYSTEM_INSTRUCTION else "analysis"
        self.calls.append(kind)
        self.contents.append(contents)
        response = getattr(self, kind)
        if isinstance(response, Exception):
            raise response
        return response

    def extract_text(self, data):
        return self.pdf_text


def sign(body: bytes, key: str = CURRENT_KEY, url: str = PROCESS_URL, issuer: str = "Upstash", expires_in: int = 300) -> str:
    now = int(time.time())
    claims = {
        "iss": issuer,
        "sub": url,
        "iat": now,
        "nbf": now,
        "exp": now + expires_in,
        "body": body_digest(body),
    }
    return jwt.encode(claims, key, algorithm="HS256")


def issue_access_token(subject: str, expires_in: int = 1800) -> str:
    """Mint a bearer token the way the upstream auth service does."""
    claims = {"sub": subject, "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def client(db_session, blob_store, publisher, model):
    from main import app

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def _override_get_current_user():
        return CurrentUser(id=OWNER_ID)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user] = _override_get_current_user
    app.dependency_overrides[get_file_service] = lambda: blob_store
    app.dependency_overrides[get_queue_publisher] = lambda: publisher
    app.dependency_overrides[get_extraction_adapter] = lambda: PlanningExtractionAdapter(
        generate=model, pdf_text_extractor=model.extract_text
    )

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        test_client.close()
        app.dependency_overrides.clear()


def deliver(client, job_id, focus=None, key=CURRENT_KEY):
    """POST a signed queue delivery for ``job_id`` to the process callback."""
    import json

    body = json.dumps({"jobId": job_id, "focus": focus}).encode()
    return client.post(
        "/documents/process",
        content=body,
        headers={"Upstash-Signature": sign(body, key=key), "Content-Type": "application/json"},
    )


def upload_pdf(client, site_id="site-1", data=b"%PDF-1.4\n% test document\n", file_name="application.pdf"):
    files = {"file": (file_name, data, "application/pdf")}
    return client.post("/documents/upload", files=files, data={"site_id": site_id})
