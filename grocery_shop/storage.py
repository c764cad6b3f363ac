# grocery_shop/storage.py
import logging
import os
import uuid
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.config import STORAGE_DIR, MAX_IMAGE_SIZE
from grocery_shop.errors import field_error

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "gif"}
SETTINGS_IMAGE_EXTENSIONS = IMAGE_EXTENSIONS | {"svg", "ico"}


def has_file(upload) -> bool:
    return upload is not None and bool(getattr(upload, "filename", None))


def check_image(upload: UploadFile, field: str, extensions=IMAGE_EXTENSIONS, max_size=MAX_IMAGE_SIZE):
    extension = Path(upload.filename).suffix.lower().lstrip(".")
    if extension not in extensions:
        raise field_error(field, f"The {field} must be a file of type: {', '.join(sorted(extensions))}.")
    if upload.size is not None and upload.size > max_size:
        raise field_error(field, f"The {field} must not be greater than {max_size // 1024} kilobytes.")


async def store_upload(upload: UploadFile, folder: str) -> str:
    """Save an upload under ``folder`` and return its path relative to the storage root."""
    extension = Path(upload.filename).suffix.lower()
    relative_path = f"{folder}/{uuid.uuid4().hex}{extension}"
    target = Path(STORAGE_DIR) / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(await upload.read())
    return relative_path


def delete_file(relative_path: str):
    if not relative_path:
        return
    target = Path(STORAGE_DIR) / relative_path
    try:
        os.remove(target)
    except FileNotFoundError:
        logger.warning("Stored file %s was already missing", relative_path)


async def commit_with_files(db: AsyncSession, stored=(), replaced=()):
    """
    Commit the session, then remove the files the change replaced.
    :param stored: paths written for this change, removed again when the commit fails
    :param replaced: paths the committed rows no longer point at
    """
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        for path in stored:
            delete_file(path)
        raise
    for path in replaced:
        delete_file(path)
