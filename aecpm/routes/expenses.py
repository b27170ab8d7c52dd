from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..config import settings
from ..models.models import Expense, Vendor, Project, Profile
from ..schemas.expenses import ExpenseCreate, ExpenseUpdate
from ..auth.security import get_current_user, require_admin, require_manager
from ..services.scoping import get_project, get_org_row, parse_uuid
from ..services.expenses import (
    DEFAULT_EXPENSE_CATEGORY,
    compute_tax,
    resolve_payment_method,
    receipt_key,
)
from ..storage.provider import StorageProvider
from .files import get_storage


router = APIRouter(tags=["expenses"])
log = structlog.get_logger()


def _num(v):
    return float(v) if v is not None else None


def serialize_expense(e: Expense) -> dict:
    return {
        "id": str(e.id),
        "project_id": str(e.project_id),
        "project_name": e.project.name if e.project else None,
        "vendor_id": str(e.vendor_id) if e.vendor_id else None,
        "expense_date": e.expense_date.isoformat() if e.expense_date else None,
        "category": e.category,
        "description": e.description,
        "amount": _num(e.amount),
        "payment_method": e.payment_method,
        "tax_rate": _num(e.tax_rate),
        "tax_amount": _num(e.tax_amount),
        "manual_tax_override": bool(e.manual_tax_override),
        "has_receipt": bool(e.receipt_key),
        "receipt_key": e.receipt_key,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def _get_expense(db: Session, expense_id: str, user: Profile) -> Expense:
    return get_org_row(db, Expense, expense_id, user, label="Expense not found")


def _check_vendor(db: Session, vendor_id, user: Profile):
    if vendor_id:
        get_org_row(db, Vendor, vendor_id, user, label="Vendor not found")


@router.get("/projects/{project_id}/expenses")
def list_project_expenses(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    rows = (
        db.query(Expense)
        .filter(Expense.project_id == proj.id)
        .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
        .all()
    )
    return {
        "items": [serialize_expense(e) for e in rows],
        "total": sum(float(e.amount or 0) for e in rows),
    }


@router.post("/projects/{project_id}/expenses")
def create_expense(project_id: str, payload: ExpenseCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    description = (payload.description or "").strip()
    if not description:
        raise HTTPException(status_code=400, detail="Description is required")
    if payload.amount is None or payload.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    _check_vendor(db, payload.vendor_id, user)
    exp = Expense(
        organization_id=proj.organization_id,
        project_id=proj.id,
        vendor_id=payload.vendor_id,
        category=payload.category or DEFAULT_EXPENSE_CATEGORY,
        description=description,
        amount=payload.amount,
        payment_method=resolve_payment_method(payload.payment_method, payload.custom_payment_method),
        tax_rate=payload.tax_rate or 0,
        tax_amount=compute_tax(payload.amount, payload.tax_rate, payload.manual_tax_override, payload.tax_amount),
        manual_tax_override=payload.manual_tax_override,
    )
    if payload.expense_date:
        exp.expense_date = payload.expense_date
    db.add(exp)
    db.commit()
    db.refresh(exp)
    return serialize_expense(exp)


@router.patch("/expenses/{expense_id}")
def update_expense(expense_id: str, payload: ExpenseUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    exp = _get_expense(db, expense_id, user)
    data = payload.dict(exclude_unset=True)
    custom = data.pop("custom_payment_method", None)
    if "description" in data:
        data["description"] = (data["description"] or "").strip()
        if not data["description"]:
            raise HTTPException(status_code=400, detail="Description is required")
    if "amount" in data and (data["amount"] is None or data["amount"] <= 0):
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    if "payment_method" in data:
        data["payment_method"] = resolve_payment_method(data["payment_method"], custom)
    if "category" in data:
        data["category"] = data["category"] or DEFAULT_EXPENSE_CATEGORY
    if "expense_date" in data and data["expense_date"] is None:
        data.pop("expense_date")
    _check_vendor(db, data.get("vendor_id"), user)
    manual_amount = data.pop("tax_amount", exp.tax_amount)
    for k, v in data.items():
        setattr(exp, k, v)
    exp.tax_amount = compute_tax(exp.amount, exp.tax_rate, bool(exp.manual_tax_override), manual_amount)
    db.commit()
    db.refresh(exp)
    return serialize_expense(exp)


@router.delete("/expenses/{expense_id}")
def delete_expense(expense_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin), storage: StorageProvider = Depends(get_storage)):
    exp = _get_expense(db, expense_id, user)
    key = exp.receipt_key
    db.delete(exp)
    db.commit()
    if key:
        storage.delete(key)
    return {"status": "ok"}


@router.post("/expenses/{expense_id}/receipt")
def upload_receipt(
    expense_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    exp = _get_expense(db, expense_id, user)
    key = receipt_key(exp.organization_id, exp.id, file.filename)
    try:
        storage.put(key, file.file, file.content_type)
    except Exception as e:
        log.warning("receipt_upload_failed", expense_id=expense_id, error=str(e))
        raise HTTPException(status_code=502, detail="Receipt upload failed")
    if exp.receipt_key and exp.receipt_key != key:
        storage.delete(exp.receipt_key)
    exp.receipt_key = key
    db.commit()
    db.refresh(exp)
    return serialize_expense(exp)


@router.get("/expenses/{expense_id}/receipt")
def get_receipt(expense_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    exp = _get_expense(db, expense_id, user)
    if not exp.receipt_key:
        raise HTTPException(status_code=404, detail="No receipt on file")
    url = storage.get_download_url(exp.receipt_key, settings.signed_url_ttl_seconds)
    if not url:
        raise HTTPException(status_code=404, detail="Receipt file missing")
    return {"url": url, "expires_in": settings.signed_url_ttl_seconds}


@router.delete("/expenses/{expense_id}/receipt")
def delete_receipt(expense_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    exp = _get_expense(db, expense_id, user)
    if exp.receipt_key:
        storage.delete(exp.receipt_key)
        exp.receipt_key = None
        db.commit()
        db.refresh(exp)
    return serialize_expense(exp)


@router.get("/expenses")
def list_org_expenses(category: Optional[str] = None, project_id: Optional[str] = None, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    """Organization-wide expense ledger with per-category totals."""
    query = db.query(Expense).join(Project, Expense.project_id == Project.id).filter(Expense.organization_id == user.organization_id)
    if project_id:
        query = query.filter(Expense.project_id == parse_uuid(project_id, "project"))
    if category and category != "all":
        query = query.filter(Expense.category == category)
    rows = query.order_by(Expense.expense_date.desc(), Expense.created_at.desc()).all()
    by_category = {}
    for e in rows:
        by_category[e.category] = by_category.get(e.category, 0.0) + float(e.amount or 0)
    return {
        "items": [serialize_expense(e) for e in rows],
        "total": sum(by_category.values()),
        "by_category": by_category,
    }
