import logging
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from .geometry import to_pdf_rect
from .signature_image import detect_image_format
from .storage import PdfStorage, write_atomic
from ..errors import ErrorKind, SigningError

logger = logging.getLogger(__name__)


def page_count(pdf_path) -> int:
    with fitz.open(pdf_path) as doc:
        return doc.page_count


def stamp_signature(source_path, image_bytes: bytes, block, storage: Optional[PdfStorage] = None, output_path=None) -> Path:
    """
    Draw a signature image onto one page of an existing PDF and write the
    result to a new ``{stem}_signed.pdf`` file. The source file is not touched.

    The image is appended to the page's content stream (nothing already on the
    page is re-encoded) and stretched to exactly fill the block's rectangle.
    Every input check runs before anything is written.
    """
    source = Path(source_path)
    ctx = dict(block_id=block.id, page_index=block.page_number)
    if not source.is_file():
        raise SigningError(ErrorKind.PDF_NOT_FOUND, f"PDF file not found: {source.name}", **ctx)

    try:
        doc = fitz.open(str(source))
    except Exception as e:
        logger.error("PDF processing error opening %s: %s", source.name, e)
        raise SigningError(ErrorKind.PROCESSING_FAILURE, f"PDF processing error: {e}", **ctx) from e

    try:
        total = doc.page_count
        if not 0 <= block.page_number < total:
            raise SigningError(
                ErrorKind.PAGE_OUT_OF_RANGE,
                f"Invalid page number: {block.page_number}. PDF has {total} pages.",
                **ctx,
            )
        page = doc[block.page_number]
        page_w, page_h = page.rect.width, page.rect.height
        rect = to_pdf_rect(block, page_w, page_h)
        detect_image_format(image_bytes)

        # PyMuPDF measures y from the top edge
        target = fitz.Rect(*rect.to_top_left(page_h))
        out = Path(output_path) if output_path else (storage or PdfStorage()).signed_path(source)
        try:
            page.insert_image(target, stream=image_bytes, keep_proportion=False, overlay=True)
            write_atomic(out, doc.tobytes())
        except Exception as e:
            logger.error(
                "Error adding image to PDF. Page: %s, Position: (%.2f, %.2f), Size: (%.2f, %.2f): %s",
                block.page_number, rect.x, rect.y, rect.width, rect.height, e,
            )
            raise SigningError(ErrorKind.PROCESSING_FAILURE, f"Error applying signature to PDF: {e}", **ctx) from e
    finally:
        doc.close()

    logger.info(
        "Image added to page %s at position (%.2f, %.2f) with size (%.2f, %.2f) -> %s",
        block.page_number, rect.x, rect.y, rect.width, rect.height, out.name,
    )
    return out
