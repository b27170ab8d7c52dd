from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import engine, get_db
from ..models.models import OneDriveConnection, OneDriveFile, Profile
from ..auth.security import get_current_user, require_admin
from ..services.onedrive_client import OneDriveClient, OneDriveError
from ..services.onedrive_sync import sync_files, store_tokens
from ..storage.provider import StorageProvider
from .files import get_storage


router = APIRouter(prefix="/integrations", tags=["integrations"])
log = structlog.get_logger()


class ExchangeRequest(BaseModel):
    code: str
    redirect_uri: Optional[str] = None


class FolderUpdate(BaseModel):
    folder_path: str


def get_onedrive_client() -> OneDriveClient:
    try:
        return OneDriveClient()
    except OneDriveError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _redirect_uri(request: Request, override: Optional[str] = None) -> str:
    if override:
        return override
    if settings.onedrive_redirect_uri:
        return settings.onedrive_redirect_uri
    origin = request.headers.get("origin") or settings.public_base_url
    return f"{origin.rstrip('/')}/"


def _connection(db: Session, user: Profile) -> Optional[OneDriveConnection]:
    return db.query(OneDriveConnection).filter(OneDriveConnection.organization_id == user.organization_id).first()


def _serialize_connection(conn: Optional[OneDriveConnection]) -> dict:
    if not conn:
        return {"connected": False, "sync_enabled": False, "folder_path": settings.onedrive_default_folder, "last_sync_at": None}
    return {
        "id": str(conn.id),
        "connected": bool(conn.access_token),
        "sync_enabled": bool(conn.sync_enabled),
        "folder_path": conn.folder_path or settings.onedrive_default_folder,
        "last_sync_at": conn.last_sync_at.isoformat() if conn.last_sync_at else None,
        "token_expires_at": conn.token_expires_at.isoformat() if conn.token_expires_at else None,
    }


def _serialize_file(f: OneDriveFile) -> dict:
    return {
        "id": str(f.id),
        "onedrive_file_id": f.onedrive_file_id,
        "file_name": f.file_name,
        "file_path": f.file_path,
        "web_url": f.web_url,
        "file_size": f.file_size,
        "file_type": f.file_type,
        "modified_at": f.modified_at.isoformat() if f.modified_at else None,
        "parsed_client_name": f.parsed_client_name,
        "parsed_project_name": f.parsed_project_name,
        "sync_status": f.sync_status,
    }


@router.get("/status")
def status(storage: StorageProvider = Depends(get_storage)):
    # DB health
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except SQLAlchemyError:
        db_ok = False

    return {
        "db": db_ok,
        "storage": storage.name,
        "blob": storage.name == "blob",
        "graph": bool(settings.microsoft_client_id and settings.microsoft_client_secret),
    }


@router.get("/onedrive")
def onedrive_status(db: Session = Depends(get_db), user: Profile = Depends(get_current_user)):
    files = (
        db.query(OneDriveFile)
        .filter(OneDriveFile.organization_id == user.organization_id)
        .order_by(OneDriveFile.modified_at.desc())
        .limit(10)
        .all()
    )
    data = _serialize_connection(_connection(db, user))
    data["recent_files"] = [_serialize_file(f) for f in files]
    return data


@router.get("/onedrive/auth-url")
def onedrive_auth_url(
    request: Request,
    redirect_uri: Optional[str] = None,
    user: Profile = Depends(get_current_user),
    client: OneDriveClient = Depends(get_onedrive_client),
):
    return {"auth_url": client.authorize_url(_redirect_uri(request, redirect_uri), str(user.organization_id))}


@router.post("/onedrive/exchange")
def onedrive_exchange(
    payload: ExchangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: Profile = Depends(require_admin),
    client: OneDriveClient = Depends(get_onedrive_client),
):
    try:
        tokens = client.exchange_code(payload.code, _redirect_uri(request, payload.redirect_uri))
    except OneDriveError as e:
        log.warning("onedrive_exchange_failed", organization_id=str(user.organization_id), error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    conn = _connection(db, user)
    if conn is None:
        conn = OneDriveConnection(organization_id=user.organization_id)
        db.add(conn)
    store_tokens(conn, tokens)
    conn.sync_enabled = True
    # Authorization codes are single use; persist tokens before the first listing
    db.commit()
    try:
        result = sync_files(db, conn, client)
    except OneDriveError as e:
        db.rollback()
        log.warning("onedrive_initial_sync_failed", organization_id=str(user.organization_id), error=str(e))
        raise HTTPException(status_code=400, detail=f"OneDrive connected but the first sync failed: {e}")
    db.commit()
    return {"success": True, "connection": _serialize_connection(conn), "sync": result}


@router.post("/onedrive/sync")
def onedrive_sync(db: Session = Depends(get_db), user: Profile = Depends(get_current_user), client: OneDriveClient = Depends(get_onedrive_client)):
    conn = _connection(db, user)
    if not conn or not conn.access_token:
        raise HTTPException(status_code=404, detail="OneDrive is not connected")
    try:
        result = sync_files(db, conn, client)
    except OneDriveError as e:
        db.rollback()
        log.warning("onedrive_sync_failed", organization_id=str(user.organization_id), error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return {"success": True, "sync": result}


@router.patch("/onedrive/folder")
def onedrive_set_folder(payload: FolderUpdate, db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    conn = _connection(db, user)
    if not conn:
        raise HTTPException(status_code=404, detail="OneDrive is not connected")
    folder = "/" + payload.folder_path.strip().strip("/")
    if folder == "/":
        raise HTTPException(status_code=400, detail="Folder path is required")
    conn.folder_path = folder
    db.commit()
    return _serialize_connection(conn)


@router.post("/onedrive/disconnect")
def onedrive_disconnect(db: Session = Depends(get_db), user: Profile = Depends(require_admin)):
    conn = _connection(db, user)
    if not conn:
        raise HTTPException(status_code=404, detail="OneDrive is not connected")
    conn.access_token = None
    conn.refresh_token = None
    conn.sync_enabled = False
    db.commit()
    return {"success": True}
