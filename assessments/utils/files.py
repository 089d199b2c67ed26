"""Helpers for files attached to assessments and submissions."""
from __future__ import annotations

import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename
from rest_framework import exceptions

logger = logging.getLogger(__name__)

FILE_TYPE_EXTENSIONS = {
    "image": {"jpg", "jpeg", "png", "gif", "bmp", "webp", "svg"},
    "document": {"pdf", "doc", "docx", "txt", "rtf", "odt"},
    "spreadsheet": {"xls", "xlsx", "csv", "ods"},
    "presentation": {"ppt", "pptx", "odp"},
    "archive": {"zip", "rar", "7z", "tar", "gz"},
    "code": {"js", "jsx", "ts", "tsx", "py", "html", "css", "scss", "json", "xml"},
}


def _extension(name: str) -> str:
    return os.path.splitext(name or "")[1].lstrip(".").lower()


def get_file_type(name: str) -> str:
    """Classify ``name`` by extension into a coarse category."""

    extension = _extension(name)
    for file_type, extensions in FILE_TYPE_EXTENSIONS.items():
        if extension in extensions:
            return file_type
    return "file"


def validate_upload(
    uploaded_file,
    *,
    max_size_mb: int | None = None,
    allowed_extensions: list[str] | None = None,
) -> None:
    if max_size_mb is None:
        max_size_mb = settings.SUBMISSION_MAX_UPLOAD_MB
    if allowed_extensions is None:
        allowed_extensions = settings.SUBMISSION_ALLOWED_EXTENSIONS

    if allowed_extensions:
        normalized = {ext.lower().lstrip(".") for ext in allowed_extensions}
        if _extension(uploaded_file.name) not in normalized:
            raise exceptions.ValidationError(
                {"file": f"File type not allowed. Allowed types: {', '.join(sorted(normalized))}"}
            )

    if uploaded_file.size > max_size_mb * 1024 * 1024:
        raise exceptions.ValidationError(
            {"file": f"File is too large. Maximum size: {max_size_mb}MB"}
        )


def store_upload(user, uploaded_file) -> dict:
    """Save ``uploaded_file`` under ``submissions/<user>/<uuid>/`` and describe it."""

    validate_upload(uploaded_file)

    file_id = uuid.uuid4().hex
    original_name = os.path.basename(uploaded_file.name)
    storage_name = f"submissions/{user.pk}/{file_id}/{get_valid_filename(original_name)}"
    saved_name = default_storage.save(storage_name, uploaded_file)

    logger.info(
        "Submission file stored",
        extra={"user_id": user.pk, "path": saved_name, "size": uploaded_file.size},
    )
    return {
        "id": file_id,
        "name": original_name,
        "url": default_storage.url(saved_name),
        "type": get_file_type(original_name),
    }
