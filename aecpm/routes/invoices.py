from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import Invoice, Payment, Service, Profile, INVOICE_STATUSES
from ..schemas.invoices import InvoiceCreate, InvoiceUpdate, InvoiceStatusUpdate, PaymentCreate
from ..auth.security import get_current_user, require_admin, require_manager
from ..services.scoping import get_project, get_invoice, parse_uuid, check_choice
from ..services import invoicing
from ..services.invoice_print import render_invoice_html


router = APIRouter(tags=["invoices"])
log = structlog.get_logger()


def _num(v):
    return float(v) if v is not None else None


def _d(v):
    return v.isoformat() if v else None


def _serialize_payment(p: Payment) -> dict:
    return {
        "id": str(p.id),
        "invoice_id": str(p.invoice_id),
        "amount": _num(p.amount),
        "payment_date": _d(p.payment_date),
        "payment_method": p.payment_method,
        "notes": p.notes,
    }


def serialize_service(s: Service) -> dict:
    return {
        "id": str(s.id),
        "project_id": str(s.project_id) if s.project_id else None,
        "name": s.name,
        "description": s.description,
        "unit_price": float(s.unit_price or 0),
        "unit": s.unit,
        "payment_status": s.payment_status,
        "created_at": s.created_at.isoformat() if s.created_at else None,
    }


def serialize_invoice(inv: Invoice, detail: bool = True) -> dict:
    data = {
        "id": str(inv.id),
        "project_id": str(inv.project_id),
        "invoice_number": inv.invoice_number,
        "total_amount": _num(inv.total_amount),
        "paid_amount": _num(inv.paid_amount),
        "balance_due": _num(inv.balance_due),
        "status": inv.status,
        "issue_date": _d(inv.issue_date),
        "due_date": _d(inv.due_date),
        "notes": inv.notes,
        "created_at": _d(inv.created_at),
    }
    if detail:
        data["items"] = [
            {
                "id": str(i.id),
                "service_id": str(i.service_id) if i.service_id else None,
                "description": i.description,
                "quantity": _num(i.quantity),
                "unit_price": _num(i.unit_price),
                "total_price": _num(i.total_price),
            }
            for i in inv.items
        ]
        data["payments"] = [_serialize_payment(p) for p in inv.payments]
    return data


def _build_items(db: Session, project, items) -> list:
    if not items:
        raise HTTPException(status_code=400, detail="An invoice needs at least one item")
    built = []
    for it in items:
        if not (it.description or "").strip():
            raise HTTPException(status_code=400, detail="Item description is required")
        if it.quantity <= 0 or it.unit_price < 0:
            raise HTTPException(status_code=400, detail="Item quantity must be positive and price zero or more")
        if it.service_id:
            svc = db.query(Service).filter(Service.id == it.service_id, Service.project_id == project.id).first()
            if not svc:
                raise HTTPException(status_code=404, detail="Service not found")
        built.append(invoicing.build_item(it.description.strip(), it.quantity, it.unit_price, service_id=it.service_id))
    return built


@router.get("/projects/{project_id}/invoices")
def list_invoices(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    return [serialize_invoice(i) for i in invoicing.project_invoices(db, proj)]


@router.get("/projects/{project_id}/invoices/available-services")
def list_available_services(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    return [serialize_service(s) for s in invoicing.available_services(db, proj)]


@router.get("/projects/{project_id}/invoices/draft-items")
def list_draft_items(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    return invoicing.draft_items(db, proj)


@router.post("/projects/{project_id}/invoices")
def create_invoice(project_id: str, payload: InvoiceCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    check_choice(payload.status, INVOICE_STATUSES, "status")
    inv = Invoice(
        organization_id=proj.organization_id,
        project_id=proj.id,
        invoice_number=(payload.invoice_number or "").strip() or invoicing.generate_invoice_number(),
        status=payload.status,
        due_date=payload.due_date,
        notes=payload.notes,
    )
    if payload.issue_date:
        inv.issue_date = payload.issue_date
    inv.items = _build_items(db, proj, payload.items)
    invoicing.recompute_invoice(inv)
    db.add(inv)
    db.commit()
    db.refresh(inv)
    log.info("invoice_created", invoice_id=str(inv.id), project_id=str(proj.id), total=_num(inv.total_amount))
    return serialize_invoice(inv)


@router.get("/invoices/{invoice_id}")
def get_invoice_detail(invoice_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    return serialize_invoice(get_invoice(db, invoice_id, user))


@router.put("/invoices/{invoice_id}")
def update_invoice(invoice_id: str, payload: InvoiceUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    inv = get_invoice(db, invoice_id, user)
    data = payload.dict(exclude_unset=True)
    items = data.pop("items", None)
    if "status" in data:
        check_choice(data["status"], INVOICE_STATUSES, "status")
    if "invoice_number" in data and not (data["invoice_number"] or "").strip():
        raise HTTPException(status_code=400, detail="invoice_number cannot be blank")
    for k, v in data.items():
        if k == "issue_date" and v is None:
            continue
        setattr(inv, k, v)
    if items is not None:
        # Replacing the collection deletes the previous lines
        inv.items = _build_items(db, inv.project, payload.items)
    invoicing.recompute_invoice(inv)
    db.commit()
    db.refresh(inv)
    return serialize_invoice(inv)


@router.patch("/invoices/{invoice_id}/status")
def set_invoice_status(invoice_id: str, payload: InvoiceStatusUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    inv = get_invoice(db, invoice_id, user)
    inv.status = check_choice(payload.status, INVOICE_STATUSES, "status")
    db.commit()
    return serialize_invoice(inv)


@router.delete("/invoices/{invoice_id}")
def delete_invoice(invoice_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    inv = get_invoice(db, invoice_id, user)
    for item in list(inv.items):
        db.delete(item)
    db.flush()
    db.delete(inv)
    db.commit()
    log.info("invoice_deleted", invoice_id=invoice_id)
    return {"status": "ok"}


@router.get("/invoices/{invoice_id}/payments")
def list_payments(invoice_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    inv = get_invoice(db, invoice_id, user)
    return [_serialize_payment(p) for p in inv.payments]


@router.post("/invoices/{invoice_id}/payments")
def record_payment(invoice_id: str, payload: PaymentCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    inv = get_invoice(db, invoice_id, user)
    if payload.amount is None or payload.amount <= 0:
        raise HTTPException(status_code=400, detail="Payment amount must be greater than zero")
    invoicing.add_payment(inv, payload.amount, payload.payment_date, payload.payment_method, payload.notes)
    db.commit()
    db.refresh(inv)
    log.info("payment_recorded", invoice_id=invoice_id, amount=payload.amount)
    return serialize_invoice(inv)


@router.delete("/payments/{payment_id}")
def delete_payment(payment_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    payment = (
        db.query(Payment)
        .join(Invoice, Payment.invoice_id == Invoice.id)
        .filter(Payment.id == parse_uuid(payment_id), Invoice.organization_id == user.organization_id)
        .first()
    )
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    inv = payment.invoice
    inv.payments.remove(payment)
    invoicing.recompute_invoice(inv)
    db.commit()
    db.refresh(inv)
    return serialize_invoice(inv)


@router.get("/invoices/{invoice_id}/print", response_class=HTMLResponse)
def print_invoice(invoice_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    inv = get_invoice(db, invoice_id, user)
    proj = inv.project
    states = invoicing.service_payment_states(invoicing.project_invoices(db, proj))
    statement = invoicing.classify_services(invoicing.project_services(db, proj), states)
    return HTMLResponse(render_invoice_html(inv, proj, statement))
