"""Object storage for certificate PDFs, job photos and signatures."""

import logging
import os
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from certnow.core.config import settings
from certnow.core.errors import UpstreamError, ValidationFailedError
from certnow.core.security import create_download_token

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

CERTIFICATES_BUCKET = "certificates"
PHOTOS_BUCKET = "job-photos"
SIGNATURES_BUCKET = "signatures"
BUCKETS = {CERTIFICATES_BUCKET, PHOTOS_BUCKET, SIGNATURES_BUCKET}

IMAGE_CONTENT_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


# =============================================================================
# Storage Backend
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    )


def _get_storage_backend() -> str:
    """Get configured storage backend."""
    return settings.STORAGE_BACKEND


def _get_local_storage_path() -> str:
    """Get local storage directory path."""
    path = settings.LOCAL_STORAGE_PATH
    os.makedirs(path, exist_ok=True)
    return path


def _object_key(bucket: str, path: str) -> str:
    if bucket not in BUCKETS:
        raise ValueError(f"Unknown storage bucket '{bucket}'")
    if path.startswith("/") or ".." in path.split("/"):
        raise ValueError("Invalid storage path")
    return f"{bucket}/{path}"


def local_file_path(bucket: str, path: str) -> str:
    return os.path.join(_get_local_storage_path(), _object_key(bucket, path))


# =============================================================================
# File Operations
# =============================================================================

def upload(bucket: str, path: str, data: bytes, content_type: str) -> str:
    """Store bytes at bucket/path, overwriting. Returns path."""
    key = _object_key(bucket, path)
    try:
        if _get_storage_backend() == "s3":
            _get_s3_client().put_object(
                Bucket=settings.S3_BUCKET,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        else:
            target = local_file_path(bucket, path)
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
    except (BotoCoreError, ClientError, OSError) as e:
        logger.error("Storage upload failed for %s: %s", key, e)
        raise UpstreamError(f"Storage upload failed: {e}") from e
    return path


def create_signed_url(bucket: str, path: str, expires_in: int | None = None) -> str:
    """
    Short-lived download URL.

    S3 uses a presigned GET; the local backend signs a token checked by the
    /storage/local route.
    """
    expires_in = expires_in or settings.SIGNED_URL_EXPIRY_SECONDS
    key = _object_key(bucket, path)

    if _get_storage_backend() == "s3":
        try:
            return _get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": settings.S3_BUCKET, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError(f"Unable to sign URL: {e}") from e

    token = create_download_token(key, expires_in)
    return f"{settings.API_BASE_URL}/storage/local/{quote(key)}?token={token}"


def image_extension(content_type: str | None) -> str:
    """File extension for an accepted image upload."""
    ext = IMAGE_CONTENT_TYPES.get((content_type or "").lower())
    if not ext:
        raise ValidationFailedError(f"Content type '{content_type}' not allowed")
    return ext


def check_upload_size(data: bytes) -> None:
    if not data:
        raise ValidationFailedError("Empty upload")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        max_mb = settings.MAX_UPLOAD_BYTES / (1024 * 1024)
        raise ValidationFailedError(f"File size exceeds {max_mb:.0f} MB limit")
