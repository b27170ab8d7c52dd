"""Shared test fixtures for the AEC project manager API."""

import os
import tempfile

import pytest
from fastapi.testclient import TestClient

from tests.helpers import add_member, create_project, signup

# Settings are read on import, so the environment has to be in place first
_TMP_DIR = tempfile.mkdtemp(prefix="aecpm-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["STORAGE_LOCAL_DIR"] = os.path.join(_TMP_DIR, "storage")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ.pop("AZURE_BLOB_CONNECTION", None)
os.environ.pop("AZURE_BLOB_CONTAINER", None)
for _name in ("MICROSOFT_CLIENT_ID", "MICROSOFT_CLIENT_SECRET", "ONEDRIVE_REDIRECT_URI"):
    os.environ.pop(_name, None)


@pytest.fixture(scope="session")
def app():
    """The application under test; tables are reset per test."""
    from aecpm.main import app as application
    return application


@pytest.fixture(autouse=True)
def _database():
    from aecpm.db import Base, engine
    from aecpm.models import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def storage(app, tmp_path):
    """Local storage rooted in a per-test directory."""
    from aecpm.routes.files import get_storage
    from aecpm.storage.local_provider import LocalStorageProvider
    provider = LocalStorageProvider(str(tmp_path / "storage"))
    app.dependency_overrides[get_storage] = lambda: provider
    yield provider
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture()
def client(app, storage):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture()
def db_session():
    from aecpm.db import SessionLocal
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def admin_headers(client):
    return signup(client, "owner@studiofirm.com")


@pytest.fixture()
def pm_headers(client, admin_headers):
    return add_member(client, admin_headers, "pat@studiofirm.com", "pm", first_name="Pat")


@pytest.fixture()
def designer_headers(client, admin_headers):
    return add_member(client, admin_headers, "dana@studiofirm.com", "designer", first_name="Dana")


@pytest.fixture()
def other_org_headers(client):
    return signup(client, "rival@rivalfirm.com", first_name="Rita", last_name="Rival")


@pytest.fixture()
def project(client, admin_headers):
    return create_project(client, admin_headers, project_address="85 Lawrence Ave", client_email="jordan@clientmail.com")
