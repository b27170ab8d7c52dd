import os
from datetime import datetime
from typing import BinaryIO, Optional

from slugify import slugify


# Logical buckets; each one is a key prefix inside the configured provider
RECEIPTS_BUCKET = "receipts"
DOCUMENTS_BUCKET = "documents"
DRAWINGS_BUCKET = "drawings"
PROPOSALS_BUCKET = "proposals"

# Objects under these prefixes may be linked without a signature
PUBLIC_BUCKETS = {DRAWINGS_BUCKET}


class StorageProvider:
    name = "base"

    def put(self, key: str, stream: BinaryIO | bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def read(self, key: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


def safe_file_name(original_name: str) -> str:
    stem, ext = os.path.splitext(original_name or "")
    return f"{slugify(stem) or 'file'}{ext.lower()}"


def bucket_key(bucket: str, *parts: str) -> str:
    return "/".join([bucket, *[str(p).strip("/") for p in parts if p]])


def timestamped_key(bucket: str, org_id, project_id, original_name: str) -> str:
    """Key for project uploads: <bucket>/<org>/<project>/<epoch_ms>_<name>."""
    epoch_ms = int(datetime.utcnow().timestamp() * 1000)
    return bucket_key(bucket, str(org_id), str(project_id), f"{epoch_ms}_{safe_file_name(original_name)}")
