"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, BinaryIO
from urllib.parse import quote

import jwt
import structlog

from ..config import settings
from .provider import StorageProvider, PUBLIC_BUCKETS


log = structlog.get_logger()


def sign_local_key(key: str, expires_s: int) -> str:
    exp = datetime.now(tz=timezone.utc) + timedelta(seconds=expires_s)
    return jwt.encode({"key": key, "exp": int(exp.timestamp())}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_local_signature(key: str, token: Optional[str]) -> bool:
    if key.split("/", 1)[0] in PUBLIC_BUCKETS:
        return True
    if not token:
        return False
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        return False
    return payload.get("key") == key


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    name = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.storage_local_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        # Remove leading slash and sanitize
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def put(self, key: str, stream: BinaryIO | bytes, content_type: Optional[str] = None) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = stream.read() if hasattr(stream, "read") else stream
        with open(path, "wb") as f:
            f.write(data)

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        clean_key = key.lstrip("/")
        if not self._get_path(clean_key).exists():
            return None
        url = f"{settings.public_base_url}/files/local/{quote(clean_key)}"
        if clean_key.split("/", 1)[0] in PUBLIC_BUCKETS:
            return url
        return f"{url}?token={sign_local_key(clean_key, expires_s)}"

    def exists(self, key: str) -> bool:
        return self._get_path(key).exists()

    def read(self, key: str) -> bytes:
        return self._get_path(key).read_bytes()

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            log.warning("storage_delete_failed", provider=self.name, key=key, error=str(e))
