"""
Aggregations behind the dashboard, budget overview and project sidebar.
"""
import math
from typing import Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import (
    Project,
    Task,
    TaskAssignment,
    Invoice,
    Expense,
    Document,
    Drawing,
    PROJECT_STATUSES,
)


CLOSED_STATUSES = ("completed", "cancelled")


def _f(v) -> float:
    return float(v or 0)


def is_active(project: Project) -> bool:
    return project.status not in CLOSED_STATUSES


def budget_overview(projects: List[Project]) -> dict:
    active = [p for p in projects if is_active(p)]
    completed = [p for p in projects if p.status == "completed"]
    total_estimated = sum(_f(p.estimated_budget) for p in projects)
    total_actual = sum(_f(p.actual_budget) for p in projects)
    completed_estimated = sum(_f(p.estimated_budget) for p in completed)
    completed_actual = sum(_f(p.actual_budget) for p in completed)
    # Math-style rounding: halves go up
    utilisation = math.floor(total_actual / completed_estimated * 100 + 0.5) if completed_estimated > 0 else 0
    return {
        "total_estimated": total_estimated,
        "total_actual": total_actual,
        "active_count": len(active),
        "completed_count": len(completed),
        "active_estimated": sum(_f(p.estimated_budget) for p in active),
        "completed_estimated": completed_estimated,
        "completed_actual": completed_actual,
        "budget_utilisation": utilisation,
    }


def assignment_totals(assignments: Iterable[TaskAssignment]) -> dict:
    hours = 0.0
    cost = 0.0
    for a in assignments:
        hours += _f(a.hours_spent)
        cost += _f(a.cost_incurred)
    return {"total_hours": hours, "total_cost": cost}


def refresh_task_actuals(task: Task) -> Task:
    totals = assignment_totals(task.assignments)
    task.actual_hours = totals["total_hours"]
    task.actual_cost = totals["total_cost"]
    return task


def project_summary(db: Session, project: Project) -> dict:
    tasks = db.query(Task).filter(Task.project_id == project.id).all()
    task_estimated_hours = sum(_f(t.estimated_hours) for t in tasks)
    task_estimated_cost = sum(_f(t.estimated_cost) for t in tasks)
    worked = assignment_totals(a for t in tasks for a in t.assignments)

    invoices = db.query(Invoice).filter(Invoice.project_id == project.id).all()
    invoiced = sum(_f(i.total_amount) for i in invoices)
    paid = sum(_f(i.paid_amount) for i in invoices)

    expense_total = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(Expense.project_id == project.id).scalar()
    document_count = db.query(func.count(Document.id)).filter(Document.project_id == project.id).scalar()
    drawing_count = db.query(func.count(Drawing.id)).filter(Drawing.project_id == project.id).scalar()

    return {
        "project_id": str(project.id),
        "task_count": len(tasks),
        "completed_task_count": len([t for t in tasks if t.status == "completed"]),
        "estimated_hours": task_estimated_hours,
        "estimated_cost": task_estimated_cost,
        "actual_hours": worked["total_hours"],
        "actual_cost": worked["total_cost"],
        "invoice_count": len(invoices),
        "invoiced": invoiced,
        "paid": paid,
        "balance": invoiced - paid,
        "expense_total": _f(expense_total),
        "document_count": int(document_count or 0),
        "drawing_count": int(drawing_count or 0),
        "estimated_budget": _f(project.estimated_budget),
        "actual_budget": _f(project.actual_budget),
    }


def dashboard(db: Session, organization_id) -> dict:
    counts = dict(
        db.query(Project.status, func.count(Project.id))
        .filter(Project.organization_id == organization_id)
        .group_by(Project.status)
        .all()
    )
    by_status = {s: int(counts.get(s, 0)) for s in PROJECT_STATUSES}
    open_tasks = (
        db.query(func.count(Task.id))
        .filter(Task.organization_id == organization_id, Task.status != "completed")
        .scalar()
    )
    outstanding = (
        db.query(func.coalesce(func.sum(Invoice.balance_due), 0))
        .filter(Invoice.organization_id == organization_id)
        .scalar()
    )
    expenses = (
        db.query(func.coalesce(func.sum(Expense.amount), 0))
        .filter(Expense.organization_id == organization_id)
        .scalar()
    )
    return {
        "project_count": sum(by_status.values()),
        "active_count": sum(v for k, v in by_status.items() if k not in CLOSED_STATUSES),
        "completed_count": by_status["completed"],
        "by_status": by_status,
        "open_task_count": int(open_tasks or 0),
        "outstanding_balance": _f(outstanding),
        "expense_total": _f(expenses),
    }
