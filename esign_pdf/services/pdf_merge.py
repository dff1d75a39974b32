import asyncio
import io
import logging
from pathlib import Path
from typing import Optional

from PyPDF2 import PdfMerger, PdfReader

from .footer_renderer import HtmlToPdfRenderer, render_footer
from .storage import PdfStorage, write_atomic
from ..errors import ErrorKind, SigningError

logger = logging.getLogger(__name__)


def merge_pdf_bytes(original_path, footer_pdf: bytes, out_path) -> Path:
    """
    Original pages first, then footer pages, both in order. Pages are copied
    as they are, nothing is re-rendered.
    """
    out = Path(out_path)
    merger = PdfMerger()
    try:
        with open(original_path, "rb") as original:
            merger.append(PdfReader(original))
            merger.append(PdfReader(io.BytesIO(footer_pdf)))
            buf = io.BytesIO()
            merger.write(buf)
    finally:
        merger.close()
    write_atomic(out, buf.getvalue())
    return out


async def merge_with_footer(
    original_path,
    footer_html: str,
    renderer: Optional[HtmlToPdfRenderer] = None,
    storage: Optional[PdfStorage] = None,
) -> Path:
    """
    Render the signature page and append it to the document as a new
    ``{stem}_merged.pdf``. The footer is mandatory here: no page, no output.
    """
    original = Path(original_path)
    if not original.is_file():
        raise SigningError(ErrorKind.PDF_NOT_FOUND, f"Original PDF file not found: {original.name}")

    footer_pdf = await render_footer(footer_html, renderer)
    if not footer_pdf:
        raise SigningError(ErrorKind.FOOTER_GENERATION_FAILED, "Failed to generate footer PDF")

    out = (storage or PdfStorage()).merged_path(original)
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, merge_pdf_bytes, original, footer_pdf, out)
    except Exception as e:
        logger.error("Error merging PDF with footer: %s", e)
        raise SigningError(ErrorKind.PROCESSING_FAILURE, f"Error merging PDF with footer: {e}") from e
    logger.info("PDF merged with footer: %s", out.name)
    return out
