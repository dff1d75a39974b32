import io
import random
from pathlib import Path

import fitz
import pytest
from PIL import Image

from esign_pdf.services.document_store import JsonDocumentStore
from esign_pdf.services.ids import DocumentIdGenerator
from esign_pdf.services.signing import SigningService
from esign_pdf.services.storage import PdfStorage

A4 = (595, 842)
A4_LANDSCAPE = (842, 595)


def make_pdf(path: Path, sizes=(A4,)) -> Path:
    doc = fitz.open()
    for width, height in sizes:
        doc.new_page(width=width, height=height)
    doc.save(str(path))
    doc.close()
    return path


def pdf_bytes(pages: int = 1) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=A4[0], height=A4[1])
    data = doc.tobytes()
    doc.close()
    return data


def image_bytes(fmt: str = "PNG", color=(255, 0, 0), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


class StubRenderer:
    """Stands in for the headless browser: returns canned bytes or fails."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def render(self, html):
        self.calls.append(html)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def storage(tmp_path):
    return PdfStorage(base_dir=tmp_path / "pdfs", max_upload_bytes=1024 * 1024, url_prefix="/api/documents/pdf/")


@pytest.fixture
def red_png():
    return image_bytes()


@pytest.fixture
def two_page_pdf(tmp_path):
    return make_pdf(tmp_path / "two_pages.pdf", (A4, A4))


@pytest.fixture
def svc(tmp_path, storage):
    return SigningService(
        JsonDocumentStore(tmp_path / "documents.json"),
        storage=storage,
        renderer=StubRenderer(result=pdf_bytes()),
        document_ids=DocumentIdGenerator(random.Random(1)),
    )
