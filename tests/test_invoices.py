"""Tests for invoices, payments, service billing and the printable statement."""
import uuid
from datetime import date

from aecpm.models.models import Invoice, InvoiceItem, Payment, Service
from aecpm.services import invoicing
from aecpm.services.invoice_print import long_date, short_date


def _add_service(client, headers, project_id, name, price):
    res = client.post(f"/projects/{project_id}/services", json={"name": name, "unit_price": price}, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()


def test_invoice_totals_and_payments(client, admin_headers, designer_headers, project):
    res = client.post(
        f"/projects/{project['id']}/invoices",
        json={
            "due_date": "2024-05-01",
            "items": [
                {"description": "Site visits", "quantity": 2, "unit_price": 150},
                {"description": "Plan check", "unit_price": 99.99},
            ],
        },
        headers=designer_headers,
    )
    assert res.status_code == 200, res.text
    inv = res.json()
    assert inv["invoice_number"].startswith("INV-")
    assert len(inv["invoice_number"]) == 10
    assert inv["status"] == "draft"
    assert inv["total_amount"] == 399.99
    assert inv["balance_due"] == 399.99
    assert [i["total_price"] for i in inv["items"]] == [300, 99.99]

    res = client.post(f"/invoices/{inv['id']}/payments", json={"amount": 0}, headers=admin_headers)
    assert res.status_code == 400

    res = client.post(
        f"/invoices/{inv['id']}/payments",
        json={"amount": 100, "payment_date": "2024-04-02", "payment_method": "check"},
        headers=designer_headers,
    )
    assert res.status_code == 200
    paid = res.json()
    assert paid["paid_amount"] == 100
    assert paid["balance_due"] == 299.99
    assert paid["payments"][0]["payment_method"] == "check"

    payments = client.get(f"/invoices/{inv['id']}/payments", headers=admin_headers).json()
    assert len(payments) == 1

    # only admins may remove payments
    assert client.delete(f"/payments/{payments[0]['id']}", headers=designer_headers).status_code == 403
    res = client.delete(f"/payments/{payments[0]['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["paid_amount"] == 0
    assert res.json()["balance_due"] == 399.99


def test_invoice_requires_items(client, admin_headers, project):
    res = client.post(f"/projects/{project['id']}/invoices", json={"items": []}, headers=admin_headers)
    assert res.status_code == 400
    res = client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": " ", "unit_price": 10}]},
        headers=admin_headers,
    )
    assert res.status_code == 400
    res = client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": "Thing", "unit_price": 10, "quantity": 0}]},
        headers=admin_headers,
    )
    assert res.status_code == 400


def test_replacing_items_recomputes_totals(client, admin_headers, pm_headers, designer_headers, project):
    inv = client.post(
        f"/projects/{project['id']}/invoices",
        json={"invoice_number": "A-100", "items": [{"description": "Concept", "unit_price": 500}]},
        headers=admin_headers,
    ).json()
    assert inv["invoice_number"] == "A-100"
    client.post(f"/invoices/{inv['id']}/payments", json={"amount": 200}, headers=admin_headers)

    update = {"items": [{"description": "Concept", "unit_price": 400}, {"description": "Revisions", "quantity": 3, "unit_price": 50}]}
    assert client.put(f"/invoices/{inv['id']}", json=update, headers=designer_headers).status_code == 403
    res = client.put(f"/invoices/{inv['id']}", json=update, headers=pm_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["total_amount"] == 550
    assert body["paid_amount"] == 200
    assert body["balance_due"] == 350
    assert [i["description"] for i in body["items"]] == ["Concept", "Revisions"]

    res = client.put(f"/invoices/{inv['id']}", json={"notes": "Net 30"}, headers=pm_headers)
    assert res.json()["notes"] == "Net 30"
    assert len(res.json()["items"]) == 2


def test_status_changes_and_delete(client, admin_headers, pm_headers, designer_headers, project):
    inv = client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": "Design", "unit_price": 100}]},
        headers=admin_headers,
    ).json()
    url = f"/invoices/{inv['id']}/status"
    assert client.patch(url, json={"status": "sent"}, headers=designer_headers).status_code == 403
    assert client.patch(url, json={"status": "void"}, headers=pm_headers).status_code == 400
    assert client.patch(url, json={"status": "sent"}, headers=pm_headers).json()["status"] == "sent"

    assert client.delete(f"/invoices/{inv['id']}", headers=pm_headers).status_code == 403
    assert client.delete(f"/invoices/{inv['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/invoices/{inv['id']}", headers=admin_headers).status_code == 404
    assert client.get(f"/projects/{project['id']}/invoices", headers=admin_headers).json() == []


def test_other_tenant_cannot_reach_invoice(client, admin_headers, other_org_headers, project):
    inv = client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": "Design", "unit_price": 100}]},
        headers=admin_headers,
    ).json()
    assert client.get(f"/invoices/{inv['id']}", headers=other_org_headers).status_code == 404
    res = client.post(f"/invoices/{inv['id']}/payments", json={"amount": 10}, headers=other_org_headers)
    assert res.status_code == 404


def test_update_rejects_null_status_and_price(client, admin_headers, project):
    inv = client.post(
        f"/projects/{project['id']}/invoices",
        json={"items": [{"description": "Design", "unit_price": 100}]},
        headers=admin_headers,
    ).json()
    assert client.put(f"/invoices/{inv['id']}", json={"status": None}, headers=admin_headers).status_code == 400
    assert client.get(f"/invoices/{inv['id']}", headers=admin_headers).json()["status"] == "draft"

    svc = _add_service(client, admin_headers, project["id"], "Design", 1200)
    for field in ("unit_price", "payment_status", "name"):
        res = client.patch(f"/services/{svc['id']}", json={field: None}, headers=admin_headers)
        assert res.status_code == 400, field
    listed = client.get(f"/projects/{project['id']}/services", headers=admin_headers).json()
    assert listed[0]["unit_price"] == 1200
    assert listed[0]["payment_status"] == "unpaid"


def test_services_crud(client, admin_headers, pm_headers, designer_headers, project):
    assert client.post(
        f"/projects/{project['id']}/services", json={"name": "", "unit_price": 10}, headers=admin_headers
    ).status_code == 400
    assert client.post(
        f"/projects/{project['id']}/services", json={"name": "Design", "unit_price": -1}, headers=admin_headers
    ).status_code == 400

    svc = _add_service(client, designer_headers, project["id"], "Design", 1200)
    assert svc["unit"] == "hour"
    assert svc["payment_status"] == "unpaid"

    res = client.patch(f"/services/{svc['id']}/payment-status", json={"payment_status": "to_be_paid"}, headers=pm_headers)
    assert res.json()["payment_status"] == "to_be_paid"
    res = client.patch(f"/services/{svc['id']}/payment-status", json={"payment_status": "maybe"}, headers=pm_headers)
    assert res.status_code == 400

    res = client.patch(f"/services/{svc['id']}", json={"unit_price": 1500, "unit": "fixed"}, headers=pm_headers)
    assert res.json()["unit_price"] == 1500
    assert res.json()["unit"] == "fixed"

    assert client.delete(f"/services/{svc['id']}", headers=pm_headers).status_code == 403
    assert client.delete(f"/services/{svc['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/projects/{project['id']}/services", headers=admin_headers).json() == []


def test_statement_flow_from_services(client, admin_headers, project):
    design = _add_service(client, admin_headers, project["id"], "Design", 1000)
    permit = _add_service(client, admin_headers, project["id"], "Permit", 500)
    _add_service(client, admin_headers, project["id"], "Construction Admin", 2000)

    res = client.post(
        f"/projects/{project['id']}/services/invoice",
        json={"service_ids": [design["id"], permit["id"]]},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    inv = res.json()
    assert inv["status"] == "draft"
    assert inv["total_amount"] == 1500
    assert {i["description"] for i in inv["items"]} == {"Design", "Permit"}

    available = client.get(f"/projects/{project['id']}/invoices/available-services", headers=admin_headers).json()
    assert [s["name"] for s in available] == ["Construction Admin"]

    client.post(
        f"/invoices/{inv['id']}/payments",
        json={"amount": 750, "payment_date": "2024-02-09"},
        headers=admin_headers,
    )

    drafts = client.get(f"/projects/{project['id']}/invoices/draft-items", headers=admin_headers).json()
    by_name = {d["description"]: d for d in drafts}
    assert by_name["Design"]["amount_paid"] == 500
    assert by_name["Design"]["payment_status"] == "unpaid"
    assert by_name["Design"]["payment_date"] == "2024-02-09"
    assert by_name["Permit"]["amount_paid"] == 250
    assert by_name["Construction Admin"]["amount_paid"] == 0
    assert by_name["Construction Admin"]["payment_date"] is None

    html = client.get(f"/invoices/{inv['id']}/print", headers=admin_headers)
    assert html.status_code == 200
    assert html.headers["content-type"].startswith("text/html")
    text = html.text
    assert "Due upon receipt – Design Fee" in text
    assert "Due upon receipt – Permit Fee" in text
    assert "Balance to Finish:</span><span>$2000.00" in text
    assert "$3500.00" in text
    assert "Jordan Client" in text
    assert "85 Lawrence Ave" in text


def test_print_escapes_text_and_lists_paid_services(client, admin_headers, project):
    client.patch(f"/projects/{project['id']}", json={"client_name": "<script>alert(1)</script>"}, headers=admin_headers)
    design = _add_service(client, admin_headers, project["id"], "<b>Design</b>", 1000)
    _add_service(client, admin_headers, project["id"], "Permit", 500)

    inv = client.post(
        f"/projects/{project['id']}/services/invoice",
        json={"service_ids": [design["id"]]},
        headers=admin_headers,
    ).json()
    client.post(
        f"/invoices/{inv['id']}/payments",
        json={"amount": 1000, "payment_date": "2024-02-09"},
        headers=admin_headers,
    )

    text = client.get(f"/invoices/{inv['id']}/print", headers=admin_headers).text
    assert "<script>" not in text
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in text
    assert "<b>Design</b>" not in text
    assert "&lt;b&gt;Design&lt;/b&gt;:" in text
    assert "Pd- 2/9/24 &lt;$1000.00&gt;" in text
    assert "Balance to Finish:</span><span>$500.00" in text


def test_invoicing_unknown_service_is_404(client, admin_headers, other_org_headers, project):
    foreign_project = client.post(
        "/projects", json={"name": "Theirs", "client_name": "X"}, headers=other_org_headers
    ).json()
    foreign = _add_service(client, other_org_headers, foreign_project["id"], "Foreign", 10)
    res = client.post(
        f"/projects/{project['id']}/services/invoice",
        json={"service_ids": [foreign["id"]]},
        headers=admin_headers,
    )
    assert res.status_code == 404
    res = client.post(f"/projects/{project['id']}/services/invoice", json={"service_ids": []}, headers=admin_headers)
    assert res.status_code == 400


def test_payments_prorate_by_line_share():
    design, permit, extra = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    first = Invoice(
        items=[
            invoicing.build_item("Design", 1, 600, service_id=design),
            invoicing.build_item("Permit", 1, 400, service_id=permit),
            invoicing.build_item("Courier", 1, 0),
        ],
        payments=[
            Payment(amount=300, payment_date=date(2024, 1, 5)),
            Payment(amount=200, payment_date=date(2024, 2, 1)),
        ],
    )
    second = Invoice(
        items=[invoicing.build_item("Design", 1, 600, service_id=design)],
        payments=[Payment(amount=300, payment_date=date(2024, 3, 1))],
    )
    states = invoicing.service_payment_states([first, second])
    assert states[design]["amount_paid"] == 600
    assert states[design]["last_payment_date"] == date(2024, 3, 1)
    assert states[permit]["amount_paid"] == 200
    assert states[permit]["last_payment_date"] == date(2024, 2, 1)

    services = [
        Service(id=design, name="Design", unit_price=600),
        Service(id=permit, name="Permit", unit_price=400),
        Service(id=extra, name="Landscape", unit_price=250),
    ]
    statement = invoicing.classify_services(services, states)
    assert [s["name"] for s in statement["paid"]] == ["Design"]
    assert [s["name"] for s in statement["current"]] == ["Permit"]
    assert statement["current"][0]["balance_due"] == 200
    assert [s["name"] for s in statement["future"]] == ["Landscape"]
    assert statement["total_project_cost"] == 1250
    assert statement["total_paid"] == 800
    assert statement["current_due"] == 200
    assert statement["balance_to_finish"] == 250


def test_recompute_invoice_uses_cents():
    inv = Invoice(items=[invoicing.build_item("Hours", 3, 33.333)], payments=[])
    invoicing.recompute_invoice(inv)
    assert str(inv.total_amount) == "99.99"
    invoicing.add_payment(inv, 50.005, date(2024, 1, 1))
    assert str(inv.paid_amount) == "50.01"
    assert str(inv.balance_due) == "49.98"
    assert inv.payments[0].payment_method == "cash"


def test_print_date_formats():
    assert long_date(date(2024, 3, 7)) == "March 7, 2024"
    assert short_date(date(2024, 3, 7)) == "3/7/24"
    assert short_date(None) == ""
