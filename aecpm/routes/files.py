import mimetypes
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response

from ..config import settings
from ..storage.provider import StorageProvider
from ..storage.local_provider import LocalStorageProvider, verify_local_signature


router = APIRouter(prefix="/files", tags=["files"])


def get_storage() -> StorageProvider:
    """
    Get storage provider based on configuration.
    Uses BlobStorageProvider when Azure Blob is configured, the local filesystem otherwise.
    """
    if settings.azure_blob_connection and settings.azure_blob_container:
        from ..storage.blob_provider import BlobStorageProvider
        return BlobStorageProvider()
    return LocalStorageProvider()


@router.get("/local/{key:path}")
def serve_local(key: str, token: Optional[str] = None, storage: StorageProvider = Depends(get_storage)):
    if not isinstance(storage, LocalStorageProvider):
        raise HTTPException(status_code=404, detail="Not found")
    if not verify_local_signature(key, token):
        raise HTTPException(status_code=403, detail="Invalid or expired link")
    if not storage.exists(key):
        raise HTTPException(status_code=404, detail="Not found")
    content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(content=storage.read(key), media_type=content_type)
