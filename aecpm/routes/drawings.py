from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..models.models import Drawing, Profile, DRAWING_CATEGORIES
from ..auth.security import get_current_user
from ..services.scoping import get_project, get_org_row, check_choice
from ..storage.provider import StorageProvider, DRAWINGS_BUCKET, timestamped_key
from .files import get_storage


router = APIRouter(tags=["drawings"])


def _serialize_drawing(d: Drawing, storage: StorageProvider) -> dict:
    return {
        "id": str(d.id),
        "project_id": str(d.project_id),
        "title": d.title,
        "category": d.category,
        "custom_category": d.custom_category,
        "display_category": d.display_category,
        "file_name": d.file_name,
        "file_type": d.file_type,
        "file_size": d.file_size,
        # drawings live in a public bucket
        "url": storage.get_download_url(d.file_key, settings.signed_url_ttl_seconds),
        "uploaded_by": str(d.uploaded_by) if d.uploaded_by else None,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


@router.get("/projects/{project_id}/drawings")
def list_drawings(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    proj = get_project(db, project_id, user)
    rows = db.query(Drawing).filter(Drawing.project_id == proj.id).order_by(Drawing.created_at.desc()).all()
    return [_serialize_drawing(d, storage) for d in rows]


@router.post("/projects/{project_id}/drawings")
def upload_drawing(
    project_id: str,
    file: UploadFile = File(...),
    title: str = Form(...),
    category: str = Form(...),
    custom_category: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    proj = get_project(db, project_id, user)
    title = (title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    check_choice(category, DRAWING_CATEGORIES, "category")
    custom_category = (custom_category or "").strip() or None
    if category == "Other" and not custom_category:
        raise HTTPException(status_code=400, detail="Custom category is required when category is Other")
    if category != "Other":
        custom_category = None
    content = file.file.read()
    key = timestamped_key(DRAWINGS_BUCKET, proj.organization_id, proj.id, file.filename)
    storage.put(key, content, file.content_type)
    drawing = Drawing(
        organization_id=proj.organization_id,
        project_id=proj.id,
        title=title,
        category=category,
        custom_category=custom_category,
        file_name=file.filename,
        file_key=key,
        file_type=file.content_type or "application/octet-stream",
        file_size=len(content),
        uploaded_by=user.id,
    )
    db.add(drawing)
    db.commit()
    db.refresh(drawing)
    return _serialize_drawing(drawing, storage)


@router.get("/drawings/{drawing_id}/download")
def download_drawing(drawing_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    drawing = get_org_row(db, Drawing, drawing_id, user, label="Drawing not found")
    url = storage.get_download_url(drawing.file_key, settings.signed_url_ttl_seconds)
    if not url:
        raise HTTPException(status_code=404, detail="File missing from storage")
    return {"url": url, "file_name": drawing.file_name}


@router.delete("/drawings/{drawing_id}")
def delete_drawing(drawing_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    drawing = get_org_row(db, Drawing, drawing_id, user, label="Drawing not found")
    storage.delete(drawing.file_key)
    db.delete(drawing)
    db.commit()
    return {"status": "ok"}
