from datetime import date

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import Response
from sqlalchemy.orm import Session
from slugify import slugify

from ..db import get_db
from ..config import settings
from ..models.models import ProjectProposal, Project, Profile, PROPOSAL_APPROVAL_STATUSES
from ..schemas.proposals import ProposalUpsert
from ..auth.security import get_current_user
from ..services.scoping import get_project, check_choice
from ..storage.provider import StorageProvider, PROPOSALS_BUCKET, timestamped_key
from ..proposals.pdf_proposal import build_proposal_pdf
from .files import get_storage
from .projects import serialize_project


router = APIRouter(prefix="/projects/{project_id}/proposal", tags=["proposals"])


PROPOSAL_DEFAULTS = {
    "title": "PROJECT PROPOSAL",
    "work_summary": "Work summary to be provided.",
    "scope_of_work": ["Scope of work to be defined."],
    "project_lead": "TBD",
    "site_engineer": "TBD",
    "supervisor": "TBD",
    "additional_notes": None,
    "approval_status": "pending",
    "approved_by": None,
    "approval_date": None,
}


def _serialize_proposal(p: ProjectProposal, project: Project) -> dict:
    return {
        "id": str(p.id),
        "project_id": str(project.id),
        "title": p.title,
        "work_summary": p.work_summary,
        "scope_of_work": list(p.scope_of_work or []),
        "project_lead": p.project_lead,
        "site_engineer": p.site_engineer,
        "supervisor": p.supervisor,
        "additional_notes": p.additional_notes,
        "approval_status": p.approval_status,
        "approved_by": p.approved_by,
        "approval_date": p.approval_date.isoformat() if p.approval_date else None,
        "proposal_file_name": p.proposal_file_name,
        "has_file": bool(p.proposal_file_key),
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _default_proposal(project: Project) -> dict:
    data = {"id": None, "project_id": str(project.id), **PROPOSAL_DEFAULTS}
    data["scope_of_work"] = list(PROPOSAL_DEFAULTS["scope_of_work"])
    data.update({"proposal_file_name": None, "has_file": False, "updated_at": None})
    return data


def _load(db: Session, project: Project):
    return db.query(ProjectProposal).filter(ProjectProposal.project_id == project.id).first()


@router.get("")
def get_proposal(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    p = _load(db, proj)
    return _serialize_proposal(p, proj) if p else _default_proposal(proj)


@router.put("")
def save_proposal(project_id: str, payload: ProposalUpsert, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    data = payload.dict(exclude_unset=True)
    if data.get("approval_status") is not None:
        check_choice(data["approval_status"], PROPOSAL_APPROVAL_STATUSES, "approval_status")
    if "scope_of_work" in data:
        data["scope_of_work"] = [s.strip() for s in (data["scope_of_work"] or []) if s and s.strip()]
    p = _load(db, proj)
    if not p:
        base = dict(PROPOSAL_DEFAULTS)
        base["scope_of_work"] = list(PROPOSAL_DEFAULTS["scope_of_work"])
        p = ProjectProposal(organization_id=proj.organization_id, project_id=proj.id, **base)
        db.add(p)
    for k, v in data.items():
        if k == "title" and not (v or "").strip():
            v = PROPOSAL_DEFAULTS["title"]
        setattr(p, k, v)
    if p.approval_status == "approved" and not p.approval_date:
        p.approval_date = date.today()
    db.commit()
    db.refresh(p)
    return _serialize_proposal(p, proj)


@router.post("/file")
def upload_proposal_file(
    project_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    proj = get_project(db, project_id, user)
    p = _load(db, proj)
    if not p:
        raise HTTPException(status_code=400, detail="Save the proposal before attaching a file")
    key = timestamped_key(PROPOSALS_BUCKET, proj.organization_id, proj.id, file.filename)
    storage.put(key, file.file, file.content_type)
    if p.proposal_file_key:
        storage.delete(p.proposal_file_key)
    p.proposal_file_key = key
    p.proposal_file_name = file.filename
    db.commit()
    db.refresh(p)
    return _serialize_proposal(p, proj)


@router.get("/file")
def get_proposal_file(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user), storage: StorageProvider = Depends(get_storage)):
    proj = get_project(db, project_id, user)
    p = _load(db, proj)
    if not p or not p.proposal_file_key:
        raise HTTPException(status_code=404, detail="No proposal file")
    url = storage.get_download_url(p.proposal_file_key, settings.signed_url_ttl_seconds)
    if not url:
        raise HTTPException(status_code=404, detail="File missing from storage")
    return {"url": url, "file_name": p.proposal_file_name}


@router.get("/pdf")
def proposal_pdf(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    p = _load(db, proj)
    data = _serialize_proposal(p, proj) if p else _default_proposal(proj)
    pdf = build_proposal_pdf(data, serialize_project(proj))
    filename = f"proposal-{slugify(proj.name) or 'project'}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
