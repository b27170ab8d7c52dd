"""Request helpers shared by the API tests."""

PASSWORD = "Secret123!"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def signup(client, email: str, first_name: str = "Ada", last_name: str = "Admin") -> dict:
    res = client.post(
        "/auth/signup",
        json={"email": email, "password": PASSWORD, "first_name": first_name, "last_name": last_name},
    )
    assert res.status_code == 200, res.text
    return auth_headers(res.json()["access_token"])


def add_member(client, admin_headers: dict, email: str, role: str, first_name: str = "Team") -> dict:
    res = client.post(
        "/profiles",
        json={"email": email, "password": PASSWORD, "role": role, "first_name": first_name, "last_name": role.title()},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    login = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    return auth_headers(login.json()["access_token"])


def create_project(client, headers: dict, **overrides) -> dict:
    payload = {"name": "Kitchen Remodel", "client_name": "Jordan Client", "project_type": "renovation"}
    payload.update(overrides)
    res = client.post("/projects", json=payload, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()
