from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Organization, Profile, USER_ROLES
from ..schemas.auth import OrganizationUpdate, ProfileCreate, ProfileUpdate, RoleUpdate, ProfileResponse
from ..auth.security import get_current_user, require_admin, get_password_hash
from ..services.scoping import get_org_row, check_choice


router = APIRouter(tags=["organizations"])


def _serialize_org(org: Organization) -> dict:
    return {
        "id": str(org.id),
        "name": org.name,
        "created_at": org.created_at.isoformat() if org.created_at else None,
    }


@router.get("/organizations/me")
def get_my_org(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    org = db.query(Organization).filter(Organization.id == user.organization_id).first()
    return _serialize_org(org)


@router.patch("/organizations/me")
def update_my_org(payload: OrganizationUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    if not payload.name:
        raise HTTPException(status_code=400, detail="Organization name is required")
    org = db.query(Organization).filter(Organization.id == user.organization_id).first()
    org.name = payload.name
    db.commit()
    return _serialize_org(org)


@router.get("/profiles", response_model=List[ProfileResponse])
def list_profiles(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    return (
        db.query(Profile)
        .filter(Profile.organization_id == user.organization_id)
        .order_by(Profile.first_name.asc())
        .all()
    )


@router.post("/profiles", response_model=ProfileResponse)
def add_member(payload: ProfileCreate, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    check_choice(payload.role, USER_ROLES, "role")
    email = payload.email.strip().lower()
    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    member = Profile(
        organization_id=user.organization_id,
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@router.patch("/profiles/me", response_model=ProfileResponse)
def update_me(payload: ProfileUpdate, db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    for k, v in payload.dict(exclude_unset=True).items():
        setattr(user, k, v)
    db.commit()
    db.refresh(user)
    return user


@router.patch("/profiles/{profile_id}/role", response_model=ProfileResponse)
def update_role(profile_id: str, payload: RoleUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    check_choice(payload.role, USER_ROLES, "role")
    member = get_org_row(db, Profile, profile_id, user, label="Profile not found")
    member.role = payload.role
    db.commit()
    db.refresh(member)
    return member
