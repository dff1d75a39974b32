"""
Error taxonomy for the signing pipeline.

Every expected failure is a SigningError carrying an ErrorKind. Callers branch
on ``err.kind`` (or ``err.category``) instead of catching per-case classes:

    try:
        out = stamp_signature(src, image, block)
    except SigningError as err:
        if err.kind is ErrorKind.PAGE_OUT_OF_RANGE: ...
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    INPUT = "input"            # caller-fixable, 4xx
    PROCESSING = "processing"  # system-side, 5xx


class ErrorKind(str, Enum):
    INVALID_GEOMETRY = "invalid_geometry"
    PAGE_OUT_OF_RANGE = "page_out_of_range"
    MALFORMED_IMAGE_DATA = "malformed_image_data"
    EMPTY_IMAGE_DATA = "empty_image_data"
    UNSUPPORTED_IMAGE_FORMAT = "unsupported_image_format"
    PDF_NOT_FOUND = "pdf_not_found"
    EMPTY_UPLOAD = "empty_upload"
    FILE_TOO_LARGE = "file_too_large"
    INVALID_CONTENT_TYPE = "invalid_content_type"
    DOCUMENT_NOT_FOUND = "document_not_found"
    BLOCK_NOT_FOUND = "block_not_found"
    BLOCK_ALREADY_SIGNED = "block_already_signed"
    DOCUMENT_LOCKED = "document_locked"
    SIGNER_ALREADY_SIGNED = "signer_already_signed"
    FOOTER_GENERATION_FAILED = "footer_generation_failed"
    PROCESSING_FAILURE = "processing_failure"


_STATUS = {
    ErrorKind.INVALID_GEOMETRY: 400,
    ErrorKind.PAGE_OUT_OF_RANGE: 400,
    ErrorKind.MALFORMED_IMAGE_DATA: 400,
    ErrorKind.EMPTY_IMAGE_DATA: 400,
    ErrorKind.UNSUPPORTED_IMAGE_FORMAT: 400,
    ErrorKind.PDF_NOT_FOUND: 404,
    ErrorKind.EMPTY_UPLOAD: 400,
    ErrorKind.FILE_TOO_LARGE: 413,
    ErrorKind.INVALID_CONTENT_TYPE: 415,
    ErrorKind.DOCUMENT_NOT_FOUND: 404,
    ErrorKind.BLOCK_NOT_FOUND: 404,
    ErrorKind.BLOCK_ALREADY_SIGNED: 409,
    ErrorKind.DOCUMENT_LOCKED: 409,
    ErrorKind.SIGNER_ALREADY_SIGNED: 409,
    ErrorKind.FOOTER_GENERATION_FAILED: 500,
    ErrorKind.PROCESSING_FAILURE: 500,
}

_USER_MESSAGES = {
    ErrorKind.INVALID_GEOMETRY: "The signature block lies outside the page.",
    ErrorKind.PAGE_OUT_OF_RANGE: "The signature block points to a page that does not exist.",
    ErrorKind.MALFORMED_IMAGE_DATA: "The signature image is not valid base64 data.",
    ErrorKind.EMPTY_IMAGE_DATA: "The signature image is empty.",
    ErrorKind.UNSUPPORTED_IMAGE_FORMAT: "Invalid image format. Supported formats: PNG, JPEG.",
    ErrorKind.PDF_NOT_FOUND: "The PDF file could not be found.",
    ErrorKind.EMPTY_UPLOAD: "A PDF file is required.",
    ErrorKind.FILE_TOO_LARGE: "PDF file size must be less than 50MB.",
    ErrorKind.INVALID_CONTENT_TYPE: "File must be a PDF.",
    ErrorKind.DOCUMENT_NOT_FOUND: "Document not found.",
    ErrorKind.BLOCK_NOT_FOUND: "Signature block not found.",
    ErrorKind.BLOCK_ALREADY_SIGNED: "This signature block has already been signed.",
    ErrorKind.DOCUMENT_LOCKED: "The document is fully signed and can no longer be edited.",
    ErrorKind.SIGNER_ALREADY_SIGNED: "Signer has already signed this document.",
    ErrorKind.FOOTER_GENERATION_FAILED: "Failed to generate the signature page.",
    ErrorKind.PROCESSING_FAILURE: "The PDF could not be processed.",
}


class SigningError(Exception):
    """
    A failure of the signing pipeline.

    ``str(err)`` is the operator-facing message (may name files and library
    errors); ``user_message`` is safe to show to end users.
    """

    def __init__(self, kind: ErrorKind, message: Optional[str] = None, **context: Any) -> None:
        self.kind = kind
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        super().__init__(message or _USER_MESSAGES[kind])

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory.PROCESSING if _STATUS[self.kind] >= 500 else ErrorCategory.INPUT

    @property
    def status_code(self) -> int:
        return _STATUS[self.kind]

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES[self.kind]

    def __repr__(self) -> str:
        return f"SigningError({self.kind.value!r}, {str(self)!r}, context={self.context!r})"
