import logging
import os
import shutil
from typing import Optional

from fastapi import UploadFile

logger = logging.getLogger(__name__)

AVATAR_EXTENSIONS = (".jpg", ".png")


def avatar_type(filename: str) -> Optional[str]:
    """Return "jpg"/"png" for an accepted avatar file name, None otherwise."""
    base = os.path.basename(filename)
    dot = base.rfind(".")
    ext = base[dot:] if dot >= 0 else ""
    if ext not in AVATAR_EXTENSIONS:
        return None
    return ext[1:]


def save_avatar(upload: UploadFile, upload_dir: str) -> str:
    # Same file name overwrites; older avatars are never removed.
    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, os.path.basename(upload.filename))
    upload.file.seek(0)
    with open(path, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    logger.info("Saved avatar %s", path)
    return path
