"""
Tenant scoping helpers.

Every row a member can reach belongs to their organization. Lookups that cross
organizations answer 404 so other tenants' ids are never disclosed.
"""
import uuid
from typing import Type, TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.models import Project, Task, Invoice, Profile


T = TypeVar("T")


def parse_uuid(value, label: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=404, detail=f"{label} not found")


def get_org_row(db: Session, model: Type[T], row_id, user: Profile, label: str = "Not found") -> T:
    row = (
        db.query(model)
        .filter(model.id == parse_uuid(row_id), model.organization_id == user.organization_id)
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail=label)
    return row


def get_project(db: Session, project_id, user: Profile) -> Project:
    return get_org_row(db, Project, project_id, user, label="Project not found")


def get_task(db: Session, task_id, user: Profile) -> Task:
    return get_org_row(db, Task, task_id, user, label="Task not found")


def get_invoice(db: Session, invoice_id, user: Profile) -> Invoice:
    return get_org_row(db, Invoice, invoice_id, user, label="Invoice not found")


def check_choice(value: str, choices, field: str) -> str:
    if value not in choices:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {value}")
    return value
