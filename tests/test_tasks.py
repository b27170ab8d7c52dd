"""Tests for tasks and time assignments."""


def _me(client, headers):
    return client.get("/auth/me", headers=headers).json()


def test_task_lifecycle(client, admin_headers, pm_headers, designer_headers, project):
    res = client.post(f"/projects/{project['id']}/tasks", json={"name": "   "}, headers=admin_headers)
    assert res.status_code == 400

    res = client.post(
        f"/projects/{project['id']}/tasks",
        json={"name": " Site survey ", "estimated_hours": 12, "estimated_cost": 900},
        headers=designer_headers,
    )
    assert res.status_code == 200
    task = res.json()
    assert task["name"] == "Site survey"
    assert task["status"] == "pending"
    assert task["actual_hours"] == 0
    assert task["assignments"] == []

    res = client.patch(f"/tasks/{task['id']}", json={"status": "in_progress"}, headers=designer_headers)
    assert res.status_code == 403
    res = client.patch(f"/tasks/{task['id']}", json={"status": "done"}, headers=pm_headers)
    assert res.status_code == 400
    res = client.patch(f"/tasks/{task['id']}", json={"status": "in_progress"}, headers=pm_headers)
    assert res.json()["status"] == "in_progress"

    listed = client.get(f"/projects/{project['id']}/tasks", headers=designer_headers).json()
    assert [t["id"] for t in listed] == [task["id"]]

    assert client.delete(f"/tasks/{task['id']}", headers=pm_headers).status_code == 200
    assert client.get(f"/tasks/{task['id']}", headers=admin_headers).status_code == 404


def test_task_status_cannot_be_cleared(client, admin_headers, project):
    task = client.post(f"/projects/{project['id']}/tasks", json={"name": "Survey"}, headers=admin_headers).json()
    res = client.patch(f"/tasks/{task['id']}", json={"status": None}, headers=admin_headers)
    assert res.status_code == 400
    assert client.get(f"/tasks/{task['id']}", headers=admin_headers).json()["status"] == "pending"


def test_assignments_roll_up_into_task_actuals(client, admin_headers, designer_headers, project):
    task = client.post(f"/projects/{project['id']}/tasks", json={"name": "Drafting"}, headers=admin_headers).json()
    designer = _me(client, designer_headers)
    admin = _me(client, admin_headers)

    client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": designer["id"], "hours_spent": 3.5, "cost_incurred": 175, "notes": "Plans"},
        headers=designer_headers,
    )
    res = client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": admin["id"], "hours_spent": 2, "cost_incurred": 150, "date_worked": "2024-03-04"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["actual_hours"] == 5.5
    assert body["actual_cost"] == 325
    assert body["total_hours"] == 5.5
    assert len(body["assignments"]) == 2
    first = body["assignments"][0]
    assert first["profile"]["first_name"] == "Dana"
    assert first["notes"] == "Plans"
    assert body["assignments"][1]["date_worked"] == "2024-03-04"

    # designers cannot remove time entries
    res = client.delete(f"/assignments/{first['id']}", headers=designer_headers)
    assert res.status_code == 403
    res = client.delete(f"/assignments/{first['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["actual_hours"] == 2
    assert res.json()["actual_cost"] == 150


def test_assignment_rejects_negative_hours_and_foreign_profiles(client, admin_headers, other_org_headers, project):
    task = client.post(f"/projects/{project['id']}/tasks", json={"name": "Review"}, headers=admin_headers).json()
    admin = _me(client, admin_headers)
    res = client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": admin["id"], "hours_spent": -1},
        headers=admin_headers,
    )
    assert res.status_code == 400

    outsider = _me(client, other_org_headers)
    res = client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": outsider["id"], "hours_spent": 1},
        headers=admin_headers,
    )
    assert res.status_code == 404

    res = client.post(
        f"/tasks/{task['id']}/assignments",
        json={"user_id": outsider["id"], "hours_spent": 1},
        headers=other_org_headers,
    )
    assert res.status_code == 404
