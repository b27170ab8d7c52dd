from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import Project, Profile, PROJECT_TYPES, PROJECT_STATUSES
from ..schemas.projects import ProjectCreate, ProjectUpdate
from ..auth.security import get_current_user, require_admin, require_manager
from ..services.scoping import get_project, get_org_row, check_choice
from ..services import project_stats
from ..storage.provider import StorageProvider
from .files import get_storage


router = APIRouter(prefix="/projects", tags=["projects"])
log = structlog.get_logger()


def _num(v):
    return float(v) if v is not None else None


def _d(v):
    return v.isoformat() if v else None


def serialize_project(p: Project) -> dict:
    return {
        "id": str(p.id),
        "organization_id": str(p.organization_id),
        "name": p.name,
        "description": p.description,
        "project_type": p.project_type,
        "status": p.status,
        "client_name": p.client_name,
        "client_email": p.client_email,
        "client_phone": p.client_phone,
        "project_address": p.project_address,
        "estimated_budget": _num(p.estimated_budget),
        "actual_budget": _num(p.actual_budget),
        "start_date": _d(p.start_date),
        "estimated_completion_date": _d(p.estimated_completion_date),
        "actual_completion_date": _d(p.actual_completion_date),
        "project_manager_id": str(p.project_manager_id) if p.project_manager_id else None,
        "created_by": str(p.created_by) if p.created_by else None,
        "created_at": _d(p.created_at),
        "updated_at": _d(p.updated_at),
    }


def _validate(data: dict, db: Session, user: Profile) -> dict:
    if "name" in data and not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Project name is required")
    if "client_name" in data and not (data["client_name"] or "").strip():
        raise HTTPException(status_code=400, detail="Client name is required")
    if "project_type" in data:
        check_choice(data["project_type"], PROJECT_TYPES, "project_type")
    if "status" in data:
        check_choice(data["status"], PROJECT_STATUSES, "status")
    if data.get("project_manager_id"):
        get_org_row(db, Profile, data["project_manager_id"], user, label="Project manager not found")
    return data


def _org_projects(db: Session, user: Profile):
    return db.query(Project).filter(Project.organization_id == user.organization_id)


@router.get("")
def list_projects(scope: str = "all", q: Optional[str] = None, status: Optional[str] = None, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    query = _org_projects(db, user)
    if scope == "active":
        query = query.filter(Project.status.notin_(project_stats.CLOSED_STATUSES)).order_by(Project.created_at.desc())
    elif scope == "completed":
        query = query.filter(Project.status == "completed").order_by(Project.actual_completion_date.desc())
    elif scope == "all":
        query = query.order_by(Project.created_at.desc())
    else:
        raise HTTPException(status_code=400, detail="scope must be one of all, active, completed")
    if status:
        query = query.filter(Project.status == status)
    if q:
        query = query.filter(Project.name.ilike(f"%{q}%"))
    return [serialize_project(p) for p in query.all()]


@router.get("/budget-overview")
def get_budget_overview(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    projects = _org_projects(db, user).order_by(Project.created_at.desc()).all()
    overview = project_stats.budget_overview(projects)
    overview["projects"] = [serialize_project(p) for p in projects]
    return overview


@router.get("/dashboard")
def get_dashboard(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    data = project_stats.dashboard(db, user.organization_id)
    recent = _org_projects(db, user).order_by(Project.created_at.desc()).limit(5).all()
    data["recent_projects"] = [serialize_project(p) for p in recent]
    return data


@router.post("")
def create_project(payload: ProjectCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    data = _validate(payload.dict(), db, user)
    data["name"] = data["name"].strip()
    data["client_name"] = data["client_name"].strip()
    proj = Project(**data, organization_id=user.organization_id, created_by=user.id)
    db.add(proj)
    db.commit()
    db.refresh(proj)
    log.info("project_created", project_id=str(proj.id), organization_id=str(user.organization_id))
    return serialize_project(proj)


@router.get("/{project_id}")
def get_project_detail(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    return serialize_project(get_project(db, project_id, user))


@router.get("/{project_id}/summary")
def get_project_summary(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    return project_stats.project_summary(db, proj)


@router.patch("/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    proj = get_project(db, project_id, user)
    data = _validate(payload.dict(exclude_unset=True), db, user)
    for k, v in data.items():
        setattr(proj, k, v)
    db.commit()
    db.refresh(proj)
    return serialize_project(proj)


@router.delete("/{project_id}")
def delete_project(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_admin), storage: StorageProvider = Depends(get_storage)):
    proj = get_project(db, project_id, user)
    keys = [d.file_key for d in proj.documents] + [d.file_key for d in proj.drawings]
    keys += [e.receipt_key for e in proj.expenses if e.receipt_key]
    if proj.proposal and proj.proposal.proposal_file_key:
        keys.append(proj.proposal.proposal_file_key)
    db.delete(proj)
    db.commit()
    for key in keys:
        storage.delete(key)
    log.info("project_deleted", project_id=project_id)
    return {"status": "ok"}
