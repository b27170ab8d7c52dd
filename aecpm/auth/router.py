import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import Organization, Profile
from ..schemas.auth import (
    SignupRequest,
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    MeResponse,
)
from .security import (
    get_password_hash,
    verify_password,
    decode_token,
    issue_tokens,
    get_current_user,
)


router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@router.post("/signup", response_model=TokenResponse)
def signup(req: SignupRequest, db: Session = Depends(get_db)):
    """Create a new organization with the signing-up user as its admin."""
    email = _normalize_email(req.email)
    if db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    org = Organization(name=f"{email}'s Organization")
    db.add(org)
    db.flush()
    profile = Profile(
        organization_id=org.id,
        email=email,
        password_hash=get_password_hash(req.password),
        first_name=(req.first_name or "").strip() or None,
        last_name=(req.last_name or "").strip() or None,
        role="admin",
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    log.info("signup_completed", profile_id=str(profile.id), organization_id=str(org.id))
    return TokenResponse(**issue_tokens(profile))


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    email = _normalize_email(req.email)
    user = db.query(Profile).filter(Profile.email == email).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return TokenResponse(**issue_tokens(user))


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token type")
    try:
        profile_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject")
    user = db.query(Profile).filter(Profile.id == profile_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    return TokenResponse(**issue_tokens(user))


@router.get("/me", response_model=MeResponse)
def me(user: Profile = Depends(get_current_user)):
    return MeResponse(
        id=str(user.id),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        organization_id=str(user.organization_id),
        organization_name=user.organization.name if user.organization else None,
    )
