from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import Service, Invoice, Profile, SERVICE_PAYMENT_STATUSES
from ..schemas.projects import ServiceCreate, ServiceUpdate, PaymentStatusUpdate
from ..schemas.invoices import InvoiceFromServices
from ..auth.security import get_current_user, require_admin, require_manager
from ..services.scoping import get_project, get_org_row, check_choice
from ..services.invoicing import build_item, generate_invoice_number, recompute_invoice
from .invoices import serialize_invoice, serialize_service


router = APIRouter(tags=["services"])
log = structlog.get_logger()


def _get_service(db: Session, service_id: str, user: Profile) -> Service:
    return get_org_row(db, Service, service_id, user, label="Service not found")


@router.get("/projects/{project_id}/services")
def list_services(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    rows = db.query(Service).filter(Service.project_id == proj.id).order_by(Service.created_at.desc()).all()
    return [serialize_service(s) for s in rows]


@router.post("/projects/{project_id}/services")
def create_service(project_id: str, payload: ServiceCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Service name is required")
    if payload.unit_price < 0:
        raise HTTPException(status_code=400, detail="unit_price must be zero or more")
    check_choice(payload.payment_status, SERVICE_PAYMENT_STATUSES, "payment_status")
    svc = Service(
        organization_id=proj.organization_id,
        project_id=proj.id,
        name=name,
        description=payload.description,
        unit_price=payload.unit_price,
        unit=payload.unit or "hour",
        payment_status=payload.payment_status,
    )
    db.add(svc)
    db.commit()
    db.refresh(svc)
    return serialize_service(svc)


@router.patch("/services/{service_id}")
def update_service(service_id: str, payload: ServiceUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    svc = _get_service(db, service_id, user)
    data = payload.dict(exclude_unset=True)
    if "name" in data and not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Service name is required")
    if "unit_price" in data and (data["unit_price"] is None or data["unit_price"] < 0):
        raise HTTPException(status_code=400, detail="unit_price must be zero or more")
    if "payment_status" in data:
        check_choice(data["payment_status"], SERVICE_PAYMENT_STATUSES, "payment_status")
    for k, v in data.items():
        setattr(svc, k, v)
    db.commit()
    db.refresh(svc)
    return serialize_service(svc)


@router.patch("/services/{service_id}/payment-status")
def set_payment_status(service_id: str, payload: PaymentStatusUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    svc = _get_service(db, service_id, user)
    svc.payment_status = check_choice(payload.payment_status, SERVICE_PAYMENT_STATUSES, "payment_status")
    db.commit()
    return serialize_service(svc)


@router.delete("/services/{service_id}")
def delete_service(service_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    svc = _get_service(db, service_id, user)
    db.delete(svc)
    db.commit()
    return {"status": "ok"}


@router.post("/projects/{project_id}/services/invoice")
def invoice_services(project_id: str, payload: InvoiceFromServices, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    """Bill the selected services on a new draft invoice, one line per service."""
    proj = get_project(db, project_id, user)
    if not payload.service_ids:
        raise HTTPException(status_code=400, detail="Select at least one service")
    services = (
        db.query(Service)
        .filter(Service.id.in_(payload.service_ids), Service.project_id == proj.id)
        .all()
    )
    if len(services) != len(set(payload.service_ids)):
        raise HTTPException(status_code=404, detail="Service not found")
    inv = Invoice(
        organization_id=proj.organization_id,
        project_id=proj.id,
        invoice_number=generate_invoice_number(),
        status="draft",
        due_date=payload.due_date,
        notes=payload.notes,
    )
    inv.items = [build_item(s.name, 1, s.unit_price, service_id=s.id) for s in services]
    recompute_invoice(inv)
    db.add(inv)
    db.commit()
    db.refresh(inv)
    log.info("invoice_created", invoice_id=str(inv.id), source="services", item_count=len(services))
    return serialize_invoice(inv)
