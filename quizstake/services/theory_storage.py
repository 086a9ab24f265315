"""Disk storage for theory solution PDFs. The quiz core keeps only the returned path."""
import uuid
from pathlib import Path
from datetime import datetime
from fastapi import UploadFile, HTTPException, status
from quizstake.config import get_settings

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}
CHUNK_SIZE = 1024 * 1024  # 1 MB


def theory_upload_dir() -> Path:
    settings = get_settings()
    if settings.theory_upload_dir:
        return Path(settings.theory_upload_dir)
    return Path(__file__).resolve().parent.parent.parent / "uploads" / "theory"


class TheoryStorage:
    def __init__(self, base_dir: Path | None = None, max_bytes: int | None = None):
        self._base_dir = base_dir or theory_upload_dir()
        self._max_bytes = max_bytes or get_settings().theory_max_upload_bytes

    def save(self, file: UploadFile, user_id: str) -> str:
        """Stream the upload to disk and return its path relative to the upload dir."""
        ct = (file.content_type or "").split(";")[0].strip().lower()
        if ct not in PDF_CONTENT_TYPES and not (file.filename or "").lower().endswith(".pdf"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are accepted.")
        self._base_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        name = f"theory_{user_id}_{stamp}_{uuid.uuid4().hex[:8]}.pdf"
        path = self._base_dir / name
        written = 0
        with path.open("wb") as f:
            while chunk := file.file.read(CHUNK_SIZE):
                written += len(chunk)
                if written > self._max_bytes:
                    break
                f.write(chunk)
        if written > self._max_bytes:
            path.unlink(missing_ok=True)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"PDF exceeds {self._max_bytes // (1024 * 1024)} MB limit.",
            )
        return name

    def discard(self, name: str) -> None:
        (self._base_dir / name).unlink(missing_ok=True)
