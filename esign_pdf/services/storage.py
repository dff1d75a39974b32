from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config import settings
from ..errors import ErrorKind, SigningError
from ..utils.dates import file_stamp, utc_now

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
SIGNED_SUFFIX = "_signed"
MERGED_SUFFIX = "_merged"


class PdfStorage:
    """
    On-disk home of uploaded and generated PDFs.

    Files are never rewritten in place: uploads are named
    ``{document_id}_{yyyyMMddHHmmss}.pdf`` and every derived artifact gets a new
    ``_signed`` / ``_merged`` name next to its source.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        max_upload_bytes: Optional[int] = None,
        url_prefix: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.base_dir = Path(base_dir or settings.pdf_storage_path).resolve()
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
        self.url_prefix = url_prefix if url_prefix is not None else settings.pdf_url_prefix
        self._clock = clock

    def _ensure_dir(self) -> Path:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        return self.base_dir

    def validate_upload(self, size: int, content_type: Optional[str], document_id: Optional[str] = None) -> None:
        if not size:
            raise SigningError(ErrorKind.EMPTY_UPLOAD, "PDF file is required", document_id=document_id)
        if (content_type or "").strip().lower() != PDF_CONTENT_TYPE:
            raise SigningError(ErrorKind.INVALID_CONTENT_TYPE, f"File must be a PDF, got {content_type!r}", document_id=document_id)
        if size > self.max_upload_bytes:
            raise SigningError(ErrorKind.FILE_TOO_LARGE, f"PDF file size {size} exceeds {self.max_upload_bytes} bytes", document_id=document_id)

    def save(self, file_bytes: bytes, document_id: str, content_type: Optional[str] = PDF_CONTENT_TYPE) -> Path:
        self.validate_upload(len(file_bytes or b""), content_type, document_id)
        path = _unique(self._ensure_dir() / f"{document_id}_{file_stamp(self._clock())}.pdf")
        try:
            write_atomic(path, file_bytes)
        except OSError as e:
            logger.error("Failed to save PDF for document %s: %s", document_id, e)
            raise SigningError(ErrorKind.PROCESSING_FAILURE, f"Failed to save PDF: {e}", document_id=document_id) from e
        logger.info("PDF file saved: %s", path)
        return path

    def path_for(self, name_or_url: str) -> Path:
        """Resolve a stored file from its name or URL; any path prefix is ignored."""
        name = os.path.basename((name_or_url or "").replace("\\", "/").rstrip("/"))
        if not name or name in (".", ".."):
            raise SigningError(ErrorKind.PDF_NOT_FOUND, f"Invalid PDF reference: {name_or_url!r}")
        return self.base_dir / name

    def locate(self, name_or_url: str) -> Path:
        path = self.path_for(name_or_url)
        if not path.is_file():
            raise SigningError(ErrorKind.PDF_NOT_FOUND, f"PDF file not found: {path.name}")
        return path

    def url_for(self, path: str | Path) -> str:
        return f"{self.url_prefix}{Path(path).name}"

    def derived_path(self, source: str | Path, suffix: str) -> Path:
        """
        ``{stem}{suffix}.pdf`` in the storage directory. If that name is taken
        (the same source stamped twice) a counter is appended so an existing
        artifact is never overwritten.
        """
        return _unique(self._ensure_dir() / f"{Path(source).stem}{suffix}.pdf")

    def signed_path(self, source: str | Path) -> Path:
        return self.derived_path(source, SIGNED_SUFFIX)

    def merged_path(self, source: str | Path) -> Path:
        return self.derived_path(source, MERGED_SUFFIX)

    def delete(self, path: str | Path) -> None:
        """Idempotent: a missing file is not an error."""
        try:
            Path(path).unlink()
            logger.info("PDF file deleted: %s", path)
        except FileNotFoundError:
            pass

    def delete_many(self, paths: Iterable[str | Path]) -> int:
        """Best-effort cleanup; failures are logged and skipped."""
        deleted = 0
        for p in paths:
            try:
                self.delete(p)
                deleted += 1
            except OSError as e:
                logger.warning("Failed to delete PDF file %s, continuing: %s", p, e)
        return deleted


def _unique(path: Path) -> Path:
    candidate = path
    n = 2
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}_{n}{path.suffix}")
        n += 1
    return candidate


def write_atomic(path: Path, data: bytes) -> None:
    """Write to a sibling temp file and rename; the target never holds a partial file."""
    tmp = path.with_name(f".{path.name}.part")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise
