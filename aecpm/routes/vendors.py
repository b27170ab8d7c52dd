from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import ExpenseCategory, Vendor, Profile
from ..schemas.expenses import CategoryCreate, CategoryUpdate, VendorCreate, VendorUpdate
from ..auth.security import get_current_user, require_admin, require_manager
from ..services.scoping import get_org_row
from ..services.expenses import DEFAULT_CATEGORIES


router = APIRouter(tags=["vendors"])


def _serialize_category(c: ExpenseCategory) -> dict:
    return {"id": str(c.id), "name": c.name, "description": c.description}


def _serialize_vendor(v: Vendor) -> dict:
    return {
        "id": str(v.id),
        "name": v.name,
        "default_category_id": str(v.default_category_id) if v.default_category_id else None,
        "default_category_name": v.default_category.name if v.default_category else None,
        "email": v.email,
        "phone": v.phone,
        "address": v.address,
    }


def _category_exists(db: Session, org_id, name: str, exclude_id=None) -> bool:
    query = db.query(ExpenseCategory).filter(ExpenseCategory.organization_id == org_id, ExpenseCategory.name == name)
    if exclude_id:
        query = query.filter(ExpenseCategory.id != exclude_id)
    return query.first() is not None


def _create_category(db: Session, user: Profile, name: str, description=None) -> ExpenseCategory:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Category name is required")
    if _category_exists(db, user.organization_id, name):
        raise HTTPException(status_code=400, detail="A category with this name already exists")
    cat = ExpenseCategory(organization_id=user.organization_id, name=name, description=description)
    db.add(cat)
    db.flush()
    return cat


# ----- Expense categories -----

@router.get("/expense-categories")
def list_categories(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    rows = (
        db.query(ExpenseCategory)
        .filter(ExpenseCategory.organization_id == user.organization_id)
        .order_by(ExpenseCategory.name.asc())
        .all()
    )
    return [_serialize_category(c) for c in rows]


@router.post("/expense-categories")
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    cat = _create_category(db, user, payload.name, payload.description)
    db.commit()
    return _serialize_category(cat)


@router.post("/expense-categories/seed-defaults")
def seed_default_categories(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    created = []
    for name in DEFAULT_CATEGORIES:
        if not _category_exists(db, user.organization_id, name):
            db.add(ExpenseCategory(organization_id=user.organization_id, name=name))
            created.append(name)
    db.commit()
    return {"created": created}


@router.patch("/expense-categories/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    cat = get_org_row(db, ExpenseCategory, category_id, user, label="Category not found")
    data = payload.dict(exclude_unset=True)
    if "name" in data:
        data["name"] = (data["name"] or "").strip()
        if not data["name"]:
            raise HTTPException(status_code=400, detail="Category name is required")
        if _category_exists(db, user.organization_id, data["name"], exclude_id=cat.id):
            raise HTTPException(status_code=400, detail="A category with this name already exists")
    for k, v in data.items():
        setattr(cat, k, v)
    db.commit()
    return _serialize_category(cat)


@router.delete("/expense-categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    cat = get_org_row(db, ExpenseCategory, category_id, user, label="Category not found")
    db.query(Vendor).filter(Vendor.default_category_id == cat.id).update({Vendor.default_category_id: None})
    db.delete(cat)
    db.commit()
    return {"status": "ok"}


# ----- Vendors -----

@router.get("/vendors")
def list_vendors(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    rows = db.query(Vendor).filter(Vendor.organization_id == user.organization_id).order_by(Vendor.name.asc()).all()
    return [_serialize_vendor(v) for v in rows]


@router.post("/vendors")
def create_vendor(payload: VendorCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Vendor name is required")
    if db.query(Vendor).filter(Vendor.organization_id == user.organization_id, Vendor.name == name).first():
        raise HTTPException(status_code=400, detail="A vendor with this name already exists")
    if payload.new_category_name:
        category = _create_category(db, user, payload.new_category_name)
    elif payload.default_category_id:
        category = get_org_row(db, ExpenseCategory, payload.default_category_id, user, label="Category not found")
    else:
        raise HTTPException(status_code=400, detail="A default category is required")
    vendor = Vendor(
        organization_id=user.organization_id,
        name=name,
        default_category_id=category.id,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
    )
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return _serialize_vendor(vendor)


@router.patch("/vendors/{vendor_id}")
def update_vendor(vendor_id: str, payload: VendorUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    vendor = get_org_row(db, Vendor, vendor_id, user, label="Vendor not found")
    data = payload.dict(exclude_unset=True)
    if "name" in data:
        data["name"] = (data["name"] or "").strip()
        if not data["name"]:
            raise HTTPException(status_code=400, detail="Vendor name is required")
    if "default_category_id" in data:
        if not data["default_category_id"]:
            raise HTTPException(status_code=400, detail="A default category is required")
        get_org_row(db, ExpenseCategory, data["default_category_id"], user, label="Category not found")
    for k, v in data.items():
        setattr(vendor, k, v)
    db.commit()
    db.refresh(vendor)
    return _serialize_vendor(vendor)


@router.delete("/vendors/{vendor_id}")
def delete_vendor(vendor_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    vendor = get_org_row(db, Vendor, vendor_id, user, label="Vendor not found")
    db.delete(vendor)
    db.commit()
    return {"status": "ok"}
