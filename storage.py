import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from config import settings
from exceptions import LedgerError


ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def _secure_filename(filename: str) -> str:
    name = Path(filename).name
    name = name.replace(' ', '_')
    name = name.replace('..', '')
    return name


def upload_dir() -> Path:
    path = Path(settings.upload_dir) / "evidence"
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_evidence_photo(upload_file: Optional[UploadFile], dest_dir: Optional[Path] = None) -> Optional[str]:
    """Save the photo taken at borrow time and return its path, if one was sent."""
    if upload_file is None or not upload_file.filename:
        return None
    filename = _secure_filename(upload_file.filename)
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if ext not in ALLOWED_EXTENSIONS:
        raise LedgerError(f"Unsupported file extension: {ext or 'none'}")

    dest = (dest_dir or upload_dir()) / f"{uuid.uuid4().hex}_{filename}"
    try:
        with dest.open("wb") as buffer:
            shutil.copyfileobj(upload_file.file, buffer)
    finally:
        upload_file.file.close()
    return str(dest)


def discard_evidence_photo(path: Optional[str]) -> None:
    if path:
        Path(path).unlink(missing_ok=True)
