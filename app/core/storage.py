import logging
import re
import time
from typing import Optional
from fastapi import HTTPException
from supabase import Client

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def sanitize_filename(filename: Optional[str], default: str = "upload") -> str:
    return _UNSAFE_CHARS.sub("_", filename or default)[:80] or default


def object_path(user_id: str, filename: Optional[str]) -> str:
    """<user_id>/<epoch ms>-<sanitized name>; the owner prefix is what storage policies match on"""
    return f"{user_id}/{int(time.time() * 1000)}-{sanitize_filename(filename)}"


def upload_object(client: Client, bucket: str, path: str, content: bytes, content_type: Optional[str]) -> str:
    """Upload bytes to Supabase Storage and return the object path"""
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")
    try:
        client.storage.from_(bucket).upload(
            path,
            content,
            file_options={"content-type": content_type or "application/octet-stream", "upsert": "false"}
        )
        logger.info(f"Uploaded {path} to bucket {bucket}")
        return path
    except Exception as e:
        logger.error(f"Supabase Storage upload failed: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to upload to storage: {str(e)}")


def remove_object(client: Client, bucket: str, path: str) -> bool:
    try:
        client.storage.from_(bucket).remove([path])
        return True
    except Exception as e:
        logger.warning(f"Failed to delete {path} from bucket {bucket}: {e}")
        return False


def signed_url(client: Client, bucket: str, path: Optional[str], expires_in: int) -> Optional[str]:
    """Time limited URL for a private object; None when the path is empty or signing fails"""
    if not path:
        return None
    try:
        signed = client.storage.from_(bucket).create_signed_url(path, expires_in)
    except Exception as e:
        logger.warning(f"Failed to sign {bucket}/{path}: {e}")
        return None
    if isinstance(signed, dict):
        return signed.get("signedURL") or signed.get("signedUrl")
    return None
