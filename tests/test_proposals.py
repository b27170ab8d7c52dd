"""Tests for project proposals and the proposal PDF."""
from datetime import date

from aecpm.proposals.pdf_proposal import build_proposal_pdf, format_date


def test_unsaved_proposal_returns_defaults(client, admin_headers, project):
    res = client.get(f"/projects/{project['id']}/proposal", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["id"] is None
    assert body["title"] == "PROJECT PROPOSAL"
    assert body["scope_of_work"] == ["Scope of work to be defined."]
    assert body["project_lead"] == "TBD"
    assert body["approval_status"] == "pending"
    assert body["has_file"] is False


def test_save_and_approve_proposal(client, admin_headers, project):
    url = f"/projects/{project['id']}/proposal"
    res = client.put(
        url,
        json={
            "title": "Kitchen Remodel Proposal",
            "work_summary": "Full redesign of the kitchen and pantry.",
            "scope_of_work": ["Measured drawings", "  ", "Permit set "],
            "project_lead": "Ada Admin",
        },
        headers=admin_headers,
    )
    assert res.status_code == 200
    saved = res.json()
    assert saved["id"]
    assert saved["scope_of_work"] == ["Measured drawings", "Permit set"]
    assert saved["site_engineer"] == "TBD"
    assert saved["approval_date"] is None

    res = client.put(url, json={"approval_status": "approved", "approved_by": "Jordan Client"}, headers=admin_headers)
    approved = res.json()
    assert approved["id"] == saved["id"]
    assert approved["approval_status"] == "approved"
    assert approved["approval_date"] == date.today().isoformat()
    assert approved["project_lead"] == "Ada Admin"

    res = client.put(url, json={"title": "  "}, headers=admin_headers)
    assert res.json()["title"] == "PROJECT PROPOSAL"

    assert client.put(url, json={"approval_status": "maybe"}, headers=admin_headers).status_code == 400


def test_proposal_pdf(client, admin_headers, project):
    url = f"/projects/{project['id']}/proposal"
    client.put(url, json={"scope_of_work": ["Site survey"], "additional_notes": "Fees exclude permit costs."}, headers=admin_headers)
    res = client.get(f"{url}/pdf", headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert 'filename="proposal-kitchen-remodel.pdf"' in res.headers["content-disposition"]
    assert res.content.startswith(b"%PDF")


def test_pdf_builder_handles_long_content():
    proposal = {
        "title": "Long Proposal",
        "work_summary": "word " * 400,
        "scope_of_work": [f"Item {i}" for i in range(120)],
        "approval_status": "approved",
        "approved_by": "Client",
        "approval_date": "2024-03-02",
    }
    pdf = build_proposal_pdf(proposal, {"name": "Tower", "client_name": "Acme"})
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


def test_format_date_suffixes():
    assert format_date(date(2024, 3, 1)) == "Mar 1st, 2024"
    assert format_date(date(2024, 3, 12)) == "Mar 12th, 2024"
    assert format_date(date(2024, 3, 22)) == "Mar 22nd, 2024"
    assert format_date(None) == ""


def test_proposal_file_upload(client, admin_headers, storage, project):
    url = f"/projects/{project['id']}/proposal"
    upload = {"file": ("Signed Proposal.pdf", b"%PDF-1.4 signed", "application/pdf")}
    assert client.post(f"{url}/file", files=upload, headers=admin_headers).status_code == 400
    assert client.get(f"{url}/file", headers=admin_headers).status_code == 404

    client.put(url, json={"work_summary": "Scope agreed."}, headers=admin_headers)
    res = client.post(f"{url}/file", files=upload, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["has_file"] is True
    assert res.json()["proposal_file_name"] == "Signed Proposal.pdf"

    link = client.get(f"{url}/file", headers=admin_headers).json()
    assert "/files/local/proposals/" in link["url"]
    assert "token=" in link["url"]


def test_other_tenant_cannot_read_proposal(client, other_org_headers, project):
    res = client.get(f"/projects/{project['id']}/proposal", headers=other_org_headers)
    assert res.status_code == 404
