"""Upload routes: authenticated, admin-gated writes to object storage."""

import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from school_gateway.shared.audit import record_upload
from school_gateway.shared.auth.auth import Identity
from school_gateway.shared.auth.database import ADMIN_ROLE, get_db
from school_gateway.shared.auth.dependencies import get_current_identity, require_role
from school_gateway.shared.cors import preflight_response
from school_gateway.shared.dependencies import get_buckets, get_object_store
from school_gateway.shared.errors import BadRequestError, ContentIntegrityError, PersistenceError
from school_gateway.shared.upload.buckets import get_bucket_config
from school_gateway.shared.upload.magic_bytes import FILE_EXTENSIONS, validate_magic_bytes
from school_gateway.shared.upload.schemas import UploadResponse
from school_gateway.shared.upload.storage import (
    LocalObjectStore,
    ObjectStore,
    StorageError,
    generate_file_name,
)

router = APIRouter(tags=["uploads"])

MEDIA_TYPES = {ext: mime for mime, ext in FILE_EXTENSIONS.items()}


def _file_size(upload: UploadFile) -> int:
    upload.file.seek(0, os.SEEK_END)
    file_size = upload.file.tell()
    upload.file.seek(0)
    return file_size


@router.options("/api/uploads", include_in_schema=False)
async def upload_preflight(request: Request):
    return preflight_response(request)


@router.post("/api/uploads", response_model=UploadResponse, status_code=status.HTTP_200_OK)
async def upload_file(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    buckets: dict = Depends(get_buckets),
):
    """
    Upload a file to a configured bucket.

    Checks run in order, each with its own rejection: bucket allow-list,
    admin role (when the bucket requires it), size, declared MIME type,
    magic bytes. The object name is generated server-side.
    """
    form = await request.form()
    upload = form.get("file")
    bucket = form.get("bucket")

    if not isinstance(upload, UploadFile) or not isinstance(bucket, str) or not bucket:
        raise BadRequestError("File and bucket are required")

    bucket_config = get_bucket_config(bucket, buckets)
    if bucket_config is None:
        raise BadRequestError("Invalid bucket specified")

    if bucket_config.requires_admin:
        require_role(db, identity, ADMIN_ROLE)

    file_size = _file_size(upload)
    if file_size > bucket_config.max_size_bytes:
        raise BadRequestError(f"File too large. Maximum size is {bucket_config.max_size_mb:g}MB")

    content_type = (upload.content_type or "").strip().lower()
    if content_type not in bucket_config.allowed_mime_types:
        allowed = ", ".join(sorted(bucket_config.allowed_mime_types))
        raise BadRequestError(f"Invalid file type. Allowed types: {allowed}")

    data = await upload.read()
    if not validate_magic_bytes(data, content_type):
        logging.warning(
            f"[SECURITY] Upload content does not match declared type {content_type}: "
            f"user {identity.id}, bucket {bucket}, {len(data)} bytes"
        )
        raise ContentIntegrityError()

    file_name = generate_file_name(content_type)
    try:
        store.upload(bucket, file_name, data, content_type)
        public_url = store.get_public_url(bucket, file_name)
    except StorageError as e:
        logging.error(f"Upload error for {bucket}/{file_name}: {str(e)}")
        raise PersistenceError("Failed to upload file")
    except Exception as e:
        logging.error(f"Unexpected storage error for {bucket}/{file_name}: {str(e)}", exc_info=True)
        raise PersistenceError("Failed to upload file")

    record_upload(identity.id, bucket, file_name, len(data), content_type)

    return UploadResponse(success=True, public_url=public_url, file_name=file_name, bucket=bucket)


@router.get("/uploads/{bucket}/{file_name}")
async def get_uploaded_file(
    bucket: str,
    file_name: str,
    store: ObjectStore = Depends(get_object_store),
    buckets: dict = Depends(get_buckets),
):
    """Serves objects written by the local object store. Prevents directory listing."""
    if not isinstance(store, LocalObjectStore) or get_bucket_config(bucket, buckets) is None:
        raise HTTPException(status_code=404, detail="File not found")

    file_path = store.path_for(bucket, file_name)
    if file_path is None:
        raise HTTPException(status_code=403, detail="Invalid filename")

    if not file_path.exists() or not file_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    media_type = MEDIA_TYPES.get(file_path.suffix.lstrip(".").lower())
    if media_type is None:
        raise HTTPException(status_code=403, detail="Invalid file type")

    return FileResponse(path=str(file_path), media_type=media_type)
