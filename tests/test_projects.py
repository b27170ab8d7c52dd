"""Tests for project CRUD, listings and aggregate views."""

from tests.helpers import create_project


def test_create_requires_name_and_client(client, admin_headers):
    res = client.post("/projects", json={"name": "  ", "client_name": "Someone"}, headers=admin_headers)
    assert res.status_code == 400
    res = client.post("/projects", json={"name": "Tower"}, headers=admin_headers)
    assert res.status_code == 422


def test_create_rejects_unknown_enum_values(client, admin_headers):
    res = client.post(
        "/projects",
        json={"name": "Tower", "client_name": "Acme", "project_type": "spaceport"},
        headers=admin_headers,
    )
    assert res.status_code == 400
    res = client.post(
        "/projects",
        json={"name": "Tower", "client_name": "Acme", "status": "dreaming"},
        headers=admin_headers,
    )
    assert res.status_code == 400


def test_blank_form_fields_become_null(client, admin_headers):
    proj = create_project(client, admin_headers, estimated_budget="", start_date="", client_email="  ")
    assert proj["estimated_budget"] is None
    assert proj["start_date"] is None
    assert proj["client_email"] is None
    assert proj["status"] == "planning"


def test_scope_filters(client, admin_headers):
    create_project(client, admin_headers, name="Active One")
    create_project(client, admin_headers, name="Cancelled", status="cancelled")
    create_project(client, admin_headers, name="Done Early", status="completed", actual_completion_date="2024-01-10")
    create_project(client, admin_headers, name="Done Late", status="completed", actual_completion_date="2024-06-01")

    active = client.get("/projects", params={"scope": "active"}, headers=admin_headers).json()
    assert [p["name"] for p in active] == ["Active One"]

    completed = client.get("/projects", params={"scope": "completed"}, headers=admin_headers).json()
    assert [p["name"] for p in completed] == ["Done Late", "Done Early"]

    everything = client.get("/projects", headers=admin_headers).json()
    assert len(everything) == 4

    found = client.get("/projects", params={"q": "done"}, headers=admin_headers).json()
    assert {p["name"] for p in found} == {"Done Early", "Done Late"}

    assert client.get("/projects", params={"scope": "archived"}, headers=admin_headers).status_code == 400


def test_budget_overview(client, admin_headers):
    create_project(client, admin_headers, name="A", estimated_budget=1000, actual_budget=300)
    create_project(client, admin_headers, name="B", status="completed", estimated_budget=2000, actual_budget=1500)
    create_project(client, admin_headers, name="C", status="cancelled", estimated_budget=500)

    overview = client.get("/projects/budget-overview", headers=admin_headers).json()
    assert overview["total_estimated"] == 3500
    assert overview["total_actual"] == 1800
    assert overview["active_count"] == 1
    assert overview["completed_count"] == 1
    assert overview["active_estimated"] == 1000
    # 1800 / 2000 * 100
    assert overview["budget_utilisation"] == 90
    assert len(overview["projects"]) == 3


def test_budget_overview_without_completed_projects(client, admin_headers):
    create_project(client, admin_headers, name="A", estimated_budget=1000, actual_budget=300)
    overview = client.get("/projects/budget-overview", headers=admin_headers).json()
    assert overview["budget_utilisation"] == 0


def test_update_requires_manager_role(client, admin_headers, pm_headers, designer_headers, project):
    res = client.patch(f"/projects/{project['id']}", json={"status": "permitting"}, headers=designer_headers)
    assert res.status_code == 403
    res = client.patch(f"/projects/{project['id']}", json={"status": "permitting"}, headers=pm_headers)
    assert res.status_code == 200
    assert res.json()["status"] == "permitting"


def test_update_rejects_null_for_required_fields(client, admin_headers, project):
    url = f"/projects/{project['id']}"
    for field in ("status", "project_type", "name", "client_name"):
        res = client.patch(url, json={field: None}, headers=admin_headers)
        assert res.status_code == 400, field
    body = client.get(url, headers=admin_headers).json()
    assert body["status"] == "planning"
    assert body["project_type"] == "renovation"


def test_delete_is_admin_only_and_cascades(client, admin_headers, pm_headers, project):
    client.post(f"/projects/{project['id']}/tasks", json={"name": "Survey"}, headers=admin_headers)
    assert client.delete(f"/projects/{project['id']}", headers=pm_headers).status_code == 403
    assert client.delete(f"/projects/{project['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/projects/{project['id']}", headers=admin_headers).status_code == 404


def test_other_tenant_cannot_see_project(client, other_org_headers, project):
    assert client.get(f"/projects/{project['id']}", headers=other_org_headers).status_code == 404
    assert client.get("/projects", headers=other_org_headers).json() == []
    res = client.post(f"/projects/{project['id']}/tasks", json={"name": "Sneaky"}, headers=other_org_headers)
    assert res.status_code == 404


def test_dashboard_and_summary(client, admin_headers, project):
    create_project(client, admin_headers, name="Finished", status="completed")
    task = client.post(
        f"/projects/{project['id']}/tasks",
        json={"name": "Drafting", "estimated_hours": 10, "estimated_cost": 800},
        headers=admin_headers,
    ).json()
    me = client.get("/auth/me", headers=admin_headers).json()
    client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": me["id"], "hours_spent": 4, "cost_incurred": 320},
        headers=admin_headers,
    )
    client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": "Design", "quantity": 1, "unit_price": 1000}]},
        headers=admin_headers,
    )
    client.post(
        f"/projects/{project['id']}/expenses",
        json={"description": "Prints", "amount": 45.5, "payment_method": "Credit Card"},
        headers=admin_headers,
    )

    summary = client.get(f"/projects/{project['id']}/summary", headers=admin_headers).json()
    assert summary["task_count"] == 1
    assert summary["actual_hours"] == 4
    assert summary["actual_cost"] == 320
    assert summary["estimated_hours"] == 10
    assert summary["invoiced"] == 1000
    assert summary["balance"] == 1000
    assert summary["expense_total"] == 45.5

    dash = client.get("/projects/dashboard", headers=admin_headers).json()
    assert dash["project_count"] == 2
    assert dash["active_count"] == 1
    assert dash["by_status"]["completed"] == 1
    assert dash["open_task_count"] == 1
    assert dash["outstanding_balance"] == 1000
    assert dash["expense_total"] == 45.5
