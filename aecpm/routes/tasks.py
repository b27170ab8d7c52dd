from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..models.models import Task, TaskAssignment, Profile, TASK_STATUSES
from ..schemas.projects import TaskCreate, TaskUpdate, AssignmentCreate
from ..auth.security import get_current_user, require_manager
from ..services.scoping import get_project, get_task, get_org_row, parse_uuid, check_choice
from ..services.project_stats import assignment_totals, refresh_task_actuals


router = APIRouter(tags=["tasks"])


def _num(v):
    return float(v) if v is not None else None


def _serialize_assignment(a: TaskAssignment) -> dict:
    profile = a.profile
    return {
        "id": str(a.id),
        "task_id": str(a.task_id),
        "user_id": str(a.user_id),
        "hours_spent": _num(a.hours_spent),
        "cost_incurred": _num(a.cost_incurred),
        "notes": a.notes,
        "date_worked": a.date_worked.isoformat() if a.date_worked else None,
        "profile": {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "email": profile.email,
        } if profile else None,
    }


def _serialize_task(t: Task) -> dict:
    totals = assignment_totals(t.assignments)
    return {
        "id": str(t.id),
        "project_id": str(t.project_id),
        "name": t.name,
        "description": t.description,
        "status": t.status,
        "estimated_hours": _num(t.estimated_hours),
        "estimated_cost": _num(t.estimated_cost),
        "actual_hours": _num(t.actual_hours),
        "actual_cost": _num(t.actual_cost),
        "created_by": str(t.created_by) if t.created_by else None,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "assignments": [_serialize_assignment(a) for a in t.assignments],
        "total_hours": totals["total_hours"],
        "total_cost": totals["total_cost"],
    }


@router.get("/projects/{project_id}/tasks")
def list_tasks(project_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    rows = (
        db.query(Task)
        .options(selectinload(Task.assignments).selectinload(TaskAssignment.profile))
        .filter(Task.project_id == proj.id)
        .order_by(Task.created_at.desc())
        .all()
    )
    return [_serialize_task(t) for t in rows]


@router.post("/projects/{project_id}/tasks")
def create_task(project_id: str, payload: TaskCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    proj = get_project(db, project_id, user)
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Task name is required")
    check_choice(payload.status, TASK_STATUSES, "status")
    task = Task(
        project_id=proj.id,
        organization_id=proj.organization_id,
        name=name,
        description=payload.description,
        status=payload.status,
        estimated_hours=payload.estimated_hours,
        estimated_cost=payload.estimated_cost,
        actual_hours=0,
        actual_cost=0,
        created_by=user.id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return _serialize_task(task)


@router.get("/tasks/{task_id}")
def get_task_detail(task_id: str, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    return _serialize_task(get_task(db, task_id, user))


@router.patch("/tasks/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    task = get_task(db, task_id, user)
    data = payload.dict(exclude_unset=True)
    if "name" in data:
        data["name"] = (data["name"] or "").strip()
        if not data["name"]:
            raise HTTPException(status_code=400, detail="Task name is required")
    if "status" in data:
        check_choice(data["status"], TASK_STATUSES, "status")
    for k, v in data.items():
        setattr(task, k, v)
    db.commit()
    db.refresh(task)
    return _serialize_task(task)


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    task = get_task(db, task_id, user)
    db.delete(task)
    db.commit()
    return {"status": "ok"}


@router.post("/tasks/{task_id}/assignments")
def add_assignment(task_id: str, payload: AssignmentCreate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    task = get_task(db, task_id, user)
    if payload.hours_spent is None or payload.hours_spent < 0:
        raise HTTPException(status_code=400, detail="hours_spent must be zero or more")
    assignee = get_org_row(db, Profile, payload.user_id, user, label="Assignee not found")
    assignment = TaskAssignment(
        user_id=assignee.id,
        hours_spent=payload.hours_spent,
        cost_incurred=payload.cost_incurred or 0,
        notes=payload.notes,
        date_worked=payload.date_worked or date.today(),
    )
    task.assignments.append(assignment)
    refresh_task_actuals(task)
    db.commit()
    db.refresh(task)
    return _serialize_task(task)


@router.delete("/assignments/{assignment_id}")
def delete_assignment(assignment_id: str, db: Session = Depends(get_db), user: Profile = Depends(require_manager)):
    assignment = (
        db.query(TaskAssignment)
        .join(Task, TaskAssignment.task_id == Task.id)
        .filter(TaskAssignment.id == parse_uuid(assignment_id), Task.organization_id == user.organization_id)
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    task = assignment.task
    task.assignments.remove(assignment)
    refresh_task_actuals(task)
    db.commit()
    db.refresh(task)
    return _serialize_task(task)
