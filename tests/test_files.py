"""Tests for project documents, drawings and the local file endpoint."""
from urllib.parse import urlsplit

from aecpm.storage.provider import safe_file_name, timestamped_key


def _upload_document(client, headers, project_id, **form):
    data = {"title": "Site plan", "category": "Contracts"}
    data.update(form)
    return client.post(
        f"/projects/{project_id}/documents",
        data=data,
        files={"file": ("Signed Contract.PDF", b"%PDF-1.4 contract", "application/pdf")},
        headers=headers,
    )


def test_safe_names_and_keys():
    assert safe_file_name("Floor Plan (rev 2).DWG") == "floor-plan-rev-2.dwg"
    assert safe_file_name("") == "file"
    key = timestamped_key("documents", "org-1", "proj-9", "My File.pdf")
    bucket, org, proj, name = key.split("/")
    assert (bucket, org, proj) == ("documents", "org-1", "proj-9")
    stamp, rest = name.split("_", 1)
    assert stamp.isdigit()
    assert rest == "my-file.pdf"


def test_document_upload_list_download_delete(client, admin_headers, storage, project):
    res = _upload_document(client, admin_headers, project["id"], description="Executed copy")
    assert res.status_code == 200, res.text
    doc = res.json()
    assert doc["file_name"] == "Signed Contract.PDF"
    assert doc["file_type"] == "application/pdf"
    assert doc["file_size"] == len(b"%PDF-1.4 contract")
    assert doc["description"] == "Executed copy"

    listed = client.get(f"/projects/{project['id']}/documents", headers=admin_headers).json()
    assert [d["id"] for d in listed] == [doc["id"]]

    link = client.get(f"/documents/{doc['id']}/download", headers=admin_headers).json()
    assert link["file_name"] == "Signed Contract.PDF"
    parts = urlsplit(link["url"])
    assert parts.path.startswith("/files/local/documents/")
    assert parts.path.endswith("_signed-contract.pdf")
    fetched = client.get(f"{parts.path}?{parts.query}")
    assert fetched.status_code == 200
    assert fetched.content == b"%PDF-1.4 contract"
    assert fetched.headers["content-type"] == "application/pdf"

    # a token minted for another key does not open this one
    assert client.get(f"{parts.path}x?{parts.query}").status_code == 403

    assert client.delete(f"/documents/{doc['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/projects/{project['id']}/documents", headers=admin_headers).json() == []
    assert client.get(f"{parts.path}?{parts.query}").status_code == 404


def test_document_validation(client, admin_headers, other_org_headers, project):
    assert _upload_document(client, admin_headers, project["id"], category="Memes").status_code == 400
    assert _upload_document(client, admin_headers, project["id"], title="  ").status_code == 400
    assert _upload_document(client, other_org_headers, project["id"]).status_code == 404


def _upload_drawing(client, headers, project_id, **form):
    data = {"title": "Ground floor", "category": "Floor Plan"}
    data.update(form)
    return client.post(
        f"/projects/{project_id}/drawings",
        data=data,
        files={"file": ("ground.png", b"drawing-bytes", "image/png")},
        headers=headers,
    )


def test_drawings_are_public(client, admin_headers, project):
    res = _upload_drawing(client, admin_headers, project["id"], custom_category="ignored")
    assert res.status_code == 200, res.text
    drawing = res.json()
    assert drawing["display_category"] == "Floor Plan"
    assert drawing["custom_category"] is None
    assert "token=" not in drawing["url"]

    # public bucket: no signature needed
    path = urlsplit(drawing["url"]).path
    fetched = client.get(path)
    assert fetched.status_code == 200
    assert fetched.content == b"drawing-bytes"

    listed = client.get(f"/projects/{project['id']}/drawings", headers=admin_headers).json()
    assert listed[0]["url"] == drawing["url"]
    link = client.get(f"/drawings/{drawing['id']}/download", headers=admin_headers).json()
    assert link["url"] == drawing["url"]


def test_drawing_custom_category(client, admin_headers, project):
    assert _upload_drawing(client, admin_headers, project["id"], category="Other").status_code == 400
    res = _upload_drawing(client, admin_headers, project["id"], category="Other", custom_category=" Survey ")
    assert res.status_code == 200
    assert res.json()["display_category"] == "Survey"
    assert _upload_drawing(client, admin_headers, project["id"], category="Sketch").status_code == 400


def test_delete_drawing_removes_file(client, admin_headers, storage, project):
    drawing = _upload_drawing(client, admin_headers, project["id"]).json()
    path = urlsplit(drawing["url"]).path
    key = path[len("/files/local/"):]
    assert storage.exists(key)
    assert client.delete(f"/drawings/{drawing['id']}", headers=admin_headers).status_code == 200
    assert not storage.exists(key)


def test_project_delete_cleans_up_files(client, admin_headers, storage, project):
    doc = _upload_document(client, admin_headers, project["id"]).json()
    link = client.get(f"/documents/{doc['id']}/download", headers=admin_headers).json()
    key = urlsplit(link["url"]).path[len("/files/local/"):]
    assert storage.exists(key)
    assert client.delete(f"/projects/{project['id']}", headers=admin_headers).status_code == 200
    assert not storage.exists(key)


def test_integration_status(client):
    status = client.get("/integrations/status").json()
    assert status["db"] is True
    assert status["storage"] == "local"
    assert status["blob"] is False


def test_request_id_is_echoed_or_minted(client):
    res = client.get("/integrations/status", headers={"X-Request-ID": "req-42"})
    assert res.headers["X-Request-ID"] == "req-42"
    minted = client.get("/integrations/status").headers["X-Request-ID"]
    assert len(minted) == 36


def test_make_engine_creates_sqlite_folder(tmp_path):
    from aecpm.db import make_engine
    folder = tmp_path / "nested" / "var"
    eng = make_engine(f"sqlite:///{folder}/app.db")
    assert folder.is_dir()
    assert eng.dialect.name == "sqlite"
    eng.dispose()
