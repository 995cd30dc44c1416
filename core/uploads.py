# core/uploads.py
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tenacity import Retrying, stop_after_attempt, wait_exponential

from .logger import get_logger

logger = get_logger(__name__)

R2_PUBLIC_ENDPOINT = os.getenv("R2_PUBLIC_ENDPOINT", "").rstrip("/")
UPLOAD_PREFIX = os.getenv("UPLOAD_PREFIX", "product-images")
UPLOAD_MAX_ATTEMPTS = int(os.getenv("UPLOAD_MAX_ATTEMPTS", "3"))
UPLOAD_RETRY_WAIT = float(os.getenv("UPLOAD_RETRY_WAIT", "1"))

MIME_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
}

# Browsers sometimes append metadata after the real extension,
# such as "photo.jpg (JPEG Image, 800 × 600 pixels) - Scaled (50%).png"
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp|gif|heic)", re.IGNORECASE)
_TRAILING_EXT_RE = re.compile(r"\.[^.]*$")

# put_object(key, body, content_type) -> response mapping (S3 style, with "ETag")
PutObject = Callable[[str, bytes, str], Any]


class UploadError(Exception):
    """Object storage rejected the upload."""


@dataclass
class UploadResult:
    key: str
    url: str
    etag: Optional[str] = None
    success: bool = True


def split_image_name(original_name: str) -> tuple[str, str]:
    """Cut a file name at its first image extension: returns (base, ext)."""
    m = _IMAGE_EXT_RE.search(original_name)
    if m:
        return original_name[: m.start()], m.group(0).lower()
    return _TRAILING_EXT_RE.sub("", original_name), ""


def slugify_file_base(base: str) -> str:
    slug = base.strip().lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9\-_.]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return re.sub(r"^[-.]+|[-.]+$", "", slug)


def build_image_key(filename: str, content_type: str, now_ms: Optional[int] = None) -> str:
    """
    Object key for an uploaded product image:
    product-images/<epoch ms>-<slug><ext>. The extension comes from the MIME
    type, then the file name, then defaults to .jpg.
    """
    base, ext_from_name = split_image_name(filename or "image")
    slug = slugify_file_base(base) or "image"
    ext = MIME_TO_EXT.get(content_type) or ext_from_name or ".jpg"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{UPLOAD_PREFIX}/{now_ms}-{slug}{ext}"


def public_url(key: str) -> str:
    return f"{R2_PUBLIC_ENDPOINT}/{key}"


def upload_image(
    data: bytes,
    filename: str,
    content_type: str,
    put_object: PutObject,
    now_ms: Optional[int] = None,
) -> UploadResult:
    """Store a (cropped) product image and return where it can be fetched."""
    if not isinstance(data, (bytes, bytearray)) or not data:
        raise ValueError("Invalid file uploaded or file is empty.")

    key = build_image_key(filename, content_type, now_ms=now_ms)
    body = bytes(data)

    try:
        for attempt in Retrying(
            stop=stop_after_attempt(UPLOAD_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=UPLOAD_RETRY_WAIT, max=10),
            reraise=True,
        ):
            with attempt:
                response = put_object(key, body, content_type)
    except Exception as e:
        logger.error("Upload of %s failed after %d attempts: %s", key, UPLOAD_MAX_ATTEMPTS, e)
        raise UploadError("Failed to upload image to storage.") from e

    etag = response.get("ETag") if isinstance(response, dict) else None
    logger.info("Uploaded %s (%d bytes, %s)", key, len(body), content_type)
    return UploadResult(key=key, url=public_url(key), etag=etag)
