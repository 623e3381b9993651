"""
services/porter/storage.py
Porter profile photos, written to the local upload directory.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from config.settings import settings
from shared.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


async def save_porter_image(upload: UploadFile) -> str:
    """Validate and store the upload. Returns the public URL."""
    extension = ALLOWED_IMAGE_TYPES.get(upload.content_type or "")
    if not extension:
        raise ValidationError("Image must be a JPEG, PNG or WebP file")

    data = await upload.read()
    if not data:
        raise ValidationError("Image file is empty")
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise ValidationError(
            f"Image exceeds {settings.MAX_IMAGE_BYTES // (1024 * 1024)} MB limit"
        )

    directory = Path(settings.UPLOAD_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{extension}"
    (directory / filename).write_bytes(data)

    return f"{settings.UPLOAD_BASE_URL.rstrip('/')}/{filename}"


def delete_porter_image(image_url: Optional[str]) -> None:
    if not image_url:
        return
    path = Path(settings.UPLOAD_DIR) / Path(image_url).name
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove porter image {path}: {e}")
