"""
OneDrive folder sync.

Mirrors the files of the connected folder into ``onedrive_files`` and creates a
planning project for every file whose name yields both a client and a project.
"""
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import OneDriveConnection, OneDriveFile, Project
from .onedrive_client import OneDriveClient, OneDriveError


log = structlog.get_logger()

FILE_TYPES = {
    "pdf": "PDF Document",
    "doc": "Word Document",
    "docx": "Word Document",
    "xls": "Excel Spreadsheet",
    "xlsx": "Excel Spreadsheet",
    "ppt": "PowerPoint Presentation",
    "pptx": "PowerPoint Presentation",
    "txt": "Text File",
    "jpg": "Image",
    "jpeg": "Image",
    "png": "Image",
    "gif": "Image",
    "zip": "Archive",
    "rar": "Archive",
}

_EXTENSION = re.compile(r"\.[^/.]+$")
_PREFIXED = re.compile(r"^(invoice|proposal)", re.IGNORECASE)


def parse_file_name(file_name: str) -> Tuple[Optional[str], Optional[str]]:
    """Guess (client, project) from names such as "Client - Project.pdf",
    "Client_Project.docx", "Invoice_Client_Project_2024.pdf" or "Acme Corp Tower.pdf".
    """
    name = _EXTENSION.sub("", file_name or "")
    client = project = None

    if _PREFIXED.match(name):
        parts = re.split(r"[-_\s]+", name)
        if len(parts) >= 3:
            client = parts[1].strip()
            project = parts[2].strip()
    elif "-" in name or "_" in name:
        parts = name.split("-" if "-" in name else "_")
        client = parts[0].strip()
        project = " ".join(parts[1:]).strip()
    else:
        words = re.split(r"\s+", name)
        if len(words) >= 2:
            client = " ".join(words[:2])
            project = " ".join(words[2:]) or words[1]

    return client or None, project or None


def get_file_type(file_name: str) -> str:
    ext = os.path.splitext(file_name or "")[1].lstrip(".").lower()
    return FILE_TYPES.get(ext, "Unknown")


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _parse_graph_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def store_tokens(conn: OneDriveConnection, tokens: dict) -> OneDriveConnection:
    conn.access_token = tokens.get("access_token")
    if tokens.get("refresh_token"):
        conn.refresh_token = tokens["refresh_token"]
    expires_in = int(tokens.get("expires_in") or 3600)
    conn.token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return conn


def ensure_access_token(conn: OneDriveConnection, client: OneDriveClient) -> str:
    if not conn.access_token:
        raise OneDriveError("OneDrive is not connected")
    expires_at = _as_utc(conn.token_expires_at)
    # Refresh a minute early so a listing never starts with a dying token
    if expires_at and expires_at <= datetime.now(timezone.utc) + timedelta(seconds=60):
        if not conn.refresh_token:
            raise OneDriveError("OneDrive token expired; reconnect the account")
        store_tokens(conn, client.refresh(conn.refresh_token))
        log.info("onedrive_token_refreshed", organization_id=str(conn.organization_id))
    return conn.access_token


def _ensure_project(db: Session, org_id, client_name: str, project_name: str, file_name: str) -> bool:
    exists = (
        db.query(Project)
        .filter(
            Project.organization_id == org_id,
            Project.client_name == client_name,
            Project.name == project_name,
        )
        .first()
    )
    if exists:
        return False
    db.add(Project(
        organization_id=org_id,
        name=project_name,
        client_name=client_name,
        description=f"Auto-imported from OneDrive file: {file_name}",
        project_type="residential_construction",
        status="planning",
    ))
    db.flush()
    return True


def sync_files(db: Session, conn: OneDriveConnection, client: OneDriveClient) -> dict:
    """Pull the folder listing and upsert every file. Caller commits."""
    folder = conn.folder_path or settings.onedrive_default_folder
    log.info("onedrive_sync_started", organization_id=str(conn.organization_id), folder=folder)
    token = ensure_access_token(conn, client)
    items = client.list_folder(token, folder)

    created = updated = projects_created = 0
    for item in items:
        if "folder" in item:
            continue
        name = item.get("name") or ""
        client_name, project_name = parse_file_name(name)
        row = (
            db.query(OneDriveFile)
            .filter(
                OneDriveFile.organization_id == conn.organization_id,
                OneDriveFile.onedrive_file_id == item.get("id"),
            )
            .first()
        )
        if row is None:
            row = OneDriveFile(organization_id=conn.organization_id, onedrive_file_id=item.get("id"))
            db.add(row)
            created += 1
        else:
            updated += 1
        row.file_name = name
        row.file_path = f"{folder}/{name}"
        row.web_url = item.get("webUrl")
        row.download_url = item.get("@microsoft.graph.downloadUrl")
        row.file_size = item.get("size")
        row.modified_at = _parse_graph_time(item.get("lastModifiedDateTime"))
        row.parsed_client_name = client_name
        row.parsed_project_name = project_name
        row.file_type = get_file_type(name)
        row.sync_status = "synced"

        if client_name and project_name:
            if _ensure_project(db, conn.organization_id, client_name, project_name, name):
                projects_created += 1

    conn.last_sync_at = datetime.now(timezone.utc)
    db.flush()
    result = {
        "files_seen": len(items),
        "files_created": created,
        "files_updated": updated,
        "projects_created": projects_created,
    }
    log.info("onedrive_sync_completed", organization_id=str(conn.organization_id), **result)
    return result
