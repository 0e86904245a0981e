# app/utils/upload_io.py
import io
import logging
import os
import uuid
from pathlib import Path, PurePosixPath

from PIL import Image, UnidentifiedImageError

from app.core.errors import NoFileError, ValidationError

logger = logging.getLogger(__name__)

VALID_EXTS = ("jpg", "jpeg", "png", "webp", "bmp", "tif", "tiff")

# URL prefix the stored image path is served under
UPLOAD_URL_PREFIX = "/uploads"


def ensure_upload_dir(upload_dir: str):
    os.makedirs(upload_dir, exist_ok=True)


def _ext_of(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return ext if ext in VALID_EXTS else "jpg"


def save_upload(file_storage, upload_dir: str) -> str:
    """
    Flask FileStorage -> file under upload_dir with a generated name.
    Returns the absolute path. Rejects missing files and non-images.
    """
    if file_storage is None or not (file_storage.filename or "").strip():
        raise NoFileError()

    image_bytes = file_storage.read()
    if not image_bytes:
        raise NoFileError()

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError("Uploaded file is not a valid image.") from e

    ensure_upload_dir(upload_dir)
    name = f"{uuid.uuid4().hex}.{_ext_of(file_storage.filename)}"
    p = os.path.join(upload_dir, name)
    with open(p, "wb") as f:
        f.write(image_bytes)
    return os.path.abspath(p)


def to_storage_path(abs_path: str, upload_dir: str) -> str:
    """
    Absolute upload path -> "/uploads/<relative path>".
    Always forward slashes so it can go straight into a URL.
    """
    base = Path(upload_dir).resolve()
    p = Path(abs_path).resolve()
    try:
        rel = p.relative_to(base)
    except ValueError:
        rel = Path(p.name)
    return str(PurePosixPath(UPLOAD_URL_PREFIX, *rel.parts))


def from_storage_path(stored_path: str, upload_dir: str) -> str | None:
    """
    "/uploads/<name>" -> absolute path under upload_dir.
    None for anything that would land outside upload_dir.
    """
    p = str(stored_path or "")
    prefix = UPLOAD_URL_PREFIX + "/"
    if not p.startswith(prefix):
        return None

    base = os.path.abspath(upload_dir)
    abs_p = os.path.normpath(os.path.join(base, p[len(prefix):]))

    # guard against path traversal
    if not abs_p.startswith(base + os.sep):
        return None
    return abs_p


def remove_upload(path: str | None):
    if not path:
        return
    try:
        if os.path.isfile(path):
            os.remove(path)
    except OSError as e:
        # a leftover file must not fail the request
        logger.warning("Could not remove upload %s: %s", path, e)
