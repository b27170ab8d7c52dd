"""
Seed the local database with a demo organization, members, projects and billing.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: running it multiple times will reuse the same
records based on unique fields (email for profiles, name for projects).
"""

from datetime import date

from aecpm.db import SessionLocal, Base, engine
from aecpm.models.models import (
    Organization,
    Profile,
    Project,
    Task,
    Service,
    Invoice,
    ExpenseCategory,
)
from aecpm.auth.security import get_password_hash
from aecpm.services.expenses import DEFAULT_CATEGORIES
from aecpm.services.invoicing import build_item, add_payment, recompute_invoice, generate_invoice_number


def ensure_org(session, name: str) -> Organization:
    org = session.query(Organization).filter(Organization.name == name).first()
    if org:
        return org
    org = Organization(name=name)
    session.add(org)
    session.flush()
    return org


def ensure_profile(session, org: Organization, email: str, password: str, role: str, first_name: str, last_name: str) -> Profile:
    profile = session.query(Profile).filter(Profile.email == email).first()
    if profile:
        profile.role = role
        session.flush()
        return profile
    profile = Profile(
        organization_id=org.id,
        email=email,
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    session.add(profile)
    session.flush()
    return profile


def ensure_project(session, org: Organization, name: str, client_name: str, **kwargs) -> Project:
    proj = (
        session.query(Project)
        .filter(Project.organization_id == org.id, Project.name == name, Project.client_name == client_name)
        .first()
    )
    if proj:
        for k, v in kwargs.items():
            setattr(proj, k, v)
        session.flush()
        return proj
    proj = Project(organization_id=org.id, name=name, client_name=client_name, **kwargs)
    session.add(proj)
    session.flush()
    return proj


def ensure_service(session, proj: Project, name: str, unit_price: float, unit: str = "fixed") -> Service:
    svc = session.query(Service).filter(Service.project_id == proj.id, Service.name == name).first()
    if svc:
        return svc
    svc = Service(organization_id=proj.organization_id, project_id=proj.id, name=name, unit_price=unit_price, unit=unit)
    session.add(svc)
    session.flush()
    return svc


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        org = ensure_org(session, "admin@example.com's Organization")
        admin = ensure_profile(session, org, "admin@example.com", "TestAdmin123!", "admin", "Ada", "Admin")
        ensure_profile(session, org, "pat.pm@example.com", "TestUser123!", "pm", "Pat", "Manager")
        ensure_profile(session, org, "dana.designer@example.com", "TestUser123!", "designer", "Dana", "Designer")

        for name in DEFAULT_CATEGORIES:
            if not session.query(ExpenseCategory).filter(ExpenseCategory.organization_id == org.id, ExpenseCategory.name == name).first():
                session.add(ExpenseCategory(organization_id=org.id, name=name))

        house = ensure_project(
            session,
            org,
            "Kitchen Remodel",
            "Jordan Client",
            project_type="renovation",
            status="design_phase",
            project_address="85 Lawrence Ave",
            estimated_budget=48000,
            start_date=date(2025, 3, 1),
            created_by=admin.id,
        )
        ensure_project(
            session,
            org,
            "Library Annex",
            "County of Essex",
            project_type="commercial_construction",
            status="completed",
            estimated_budget=250000,
            actual_budget=238500,
            actual_completion_date=date(2025, 1, 15),
            created_by=admin.id,
        )

        if not session.query(Task).filter(Task.project_id == house.id).first():
            session.add(Task(organization_id=org.id, project_id=house.id, name="Schematic design", estimated_hours=24, estimated_cost=3600, created_by=admin.id))

        retainer = ensure_service(session, house, "Initial Retainer", 1500)
        ensure_service(session, house, "Construction Drawings", 4500)
        ensure_service(session, house, "Permit Filing", 900)

        if not session.query(Invoice).filter(Invoice.project_id == house.id).first():
            inv = Invoice(organization_id=org.id, project_id=house.id, invoice_number=generate_invoice_number(), status="sent")
            inv.items = [build_item(retainer.name, 1, retainer.unit_price, service_id=retainer.id)]
            recompute_invoice(inv)
            session.add(inv)
            add_payment(inv, 1500, date(2025, 3, 5), "check")

        session.commit()
        print("Seeded demo data for", org.name)
    finally:
        session.close()


if __name__ == "__main__":
    main()
