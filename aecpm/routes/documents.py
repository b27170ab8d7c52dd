from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..config import settings
from ..models.models import Document, Profile, DOCUMENT_CATEGORIES
from ..auth.security import get_current_user
from ..services.scoping import get_project, get_org_row, check_choice
from ..storage.provider import StorageProvider, DOCUMENTS_BUCKET, timestamped_key
from .files import get_storage


router = APIRouter(tags=["documents"])
log = structlog.get_logger()


def _serialize_document(d: Document) -> dict:
    return {
        "id": str(d.id),
        "project_id": str(d.project_id),
        "title": d.title,
        "description": d.description,
        "category": d.category,
        "file_name": d.file_name,
        "file_type": d.file_type,
        "file_size": d.file_size,
        "uploaded_by": str(d.uploaded_by) if d.uploaded_by else None,
        "created_at": d.created_at.isoformat() if d.created_at else None,
    }


@router.get("/projects/{project_id}/documents")
def list_documents(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    rows = db.query(Document).filter(Document.project_id == proj.id).order_by(Document.created_at.desc()).all()
    return [_serialize_document(d) for d in rows]


@router.post("/projects/{project_id}/documents")
def upload_document(
    project_id: str,
    file: UploadFile = File(...),
    title: str = Form(...),
    category: str = Form(...),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    proj = get_project(db, project_id, user)
    title = (title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    check_choice(category, DOCUMENT_CATEGORIES, "category")
    content = file.file.read()
    key = timestamped_key(DOCUMENTS_BUCKET, proj.organization_id, proj.id, file.filename)
    storage.put(key, content, file.content_type)
    doc = Document(
        organization_id=proj.organization_id,
        project_id=proj.id,
        title=title,
        description=(description or "").strip() or None,
        category=category,
        file_name=file.filename,
        file_key=key,
        file_type=file.content_type or "application/octet-stream",
        file_size=len(content),
        uploaded_by=user.id,
    )
    db.add(doc)
    db.commit()
    db.refresh(doc)
    log.info("document_uploaded", document_id=str(doc.id), project_id=str(proj.id), size=len(content))
    return _serialize_document(doc)


@router.get("/documents/{document_id}/download")
def download_document(document_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    doc = get_org_row(db, Document, document_id, user, label="Document not found")
    url = storage.get_download_url(doc.file_key, settings.signed_url_ttl_seconds)
    if not url:
        raise HTTPException(status_code=404, detail="File missing from storage")
    return {"url": url, "file_name": doc.file_name, "expires_in": settings.signed_url_ttl_seconds}


@router.delete("/documents/{document_id}")
def delete_document(document_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    doc = get_org_row(db, Document, document_id, user, label="Document not found")
    storage.delete(doc.file_key)
    db.delete(doc)
    db.commit()
    return {"status": "ok"}
