from __future__ import annotations

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .blocks import SignatureBlock, find_block, replace_blocks
from .document_store import Document, DocumentRepository, DocumentStatus, SignatureRecord
from .footer_html import build_footer_html
from .footer_renderer import HtmlToPdfRenderer, SeleniumHtmlRenderer, render_footer
from .ids import DocumentIdGenerator, IdGenerator, UuidIdGenerator
from .pdf_merge import merge_with_footer
from .pdf_overlay import stamp_signature
from .signature_image import decode_signature_image
from .storage import PdfStorage
from ..errors import ErrorKind, SigningError
from ..utils.dates import file_stamp

logger = logging.getLogger(__name__)


class SigningService:
    """
    Document-level workflow around the PDF pipeline: upload, block placement,
    stamping, export and deletion.

    Stamp, export and edit operations on one document run one at a time
    (per-document lock), so each stamp starts from the file the previous one
    produced. The document's ``pdf_url`` moves only after the new file is
    completely written.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        storage: Optional[PdfStorage] = None,
        renderer: Optional[HtmlToPdfRenderer] = None,
        document_ids: Optional[DocumentIdGenerator] = None,
        ids: Optional[IdGenerator] = None,
    ):
        self.repository = repository
        self.storage = storage or PdfStorage()
        self.renderer = renderer or SeleniumHtmlRenderer()
        self.document_ids = document_ids or DocumentIdGenerator()
        self.ids = ids or UuidIdGenerator()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def locked(self, document_id: str):
        """
        Hold the document's lock. The entry is dropped again once nobody holds
        or waits for it, so the registry only contains documents in use.
        """
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._lock_users[document_id] = self._lock_users.get(document_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[document_id] -= 1
            if not self._lock_users[document_id]:
                del self._lock_users[document_id]
                del self._locks[document_id]

    @property
    def active_locks(self) -> int:
        return len(self._locks)

    def get_document(self, document_id: str) -> Document:
        doc = self.repository.get(document_id)
        if doc is None:
            raise SigningError(ErrorKind.DOCUMENT_NOT_FOUND, f"Document {document_id} not found", document_id=document_id)
        return doc

    def _new_document_id(self) -> str:
        doc_id = self.document_ids.new_id("pdf")
        while self.repository.exists(doc_id):
            doc_id = self.document_ids.new_id("pdf")
        return doc_id

    async def upload(self, file_bytes: bytes, content_type: Optional[str], title: str = "", location: Optional[str] = None) -> Document:
        doc_id = self._new_document_id()
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, self.storage.save, file_bytes, doc_id, content_type)
        doc = Document(id=doc_id, title=title, pdf_url=self.storage.url_for(path), location=location, files=[path.name])
        self.repository.save(doc)
        logger.info("Document %s created from upload %s", doc_id, path.name)
        return doc

    async def update_blocks(self, document_id: str, incoming: Iterable[dict]) -> List[SignatureBlock]:
        async with self.locked(document_id):
            doc = self.get_document(document_id)
            if doc.status == DocumentStatus.SIGNED:
                raise SigningError(ErrorKind.DOCUMENT_LOCKED, "Cannot update fully signed document", document_id=document_id)
            blocks = replace_blocks(incoming, doc.blocks, self.ids)
            doc.blocks = blocks
            self.repository.save(doc)
        logger.info("Saved %d signature blocks for document %s: %s", len(blocks), document_id, ", ".join(b.id for b in blocks))
        return blocks

    def add_signature(self, doc: Document, signer_id: str, signer_role: str, **details) -> SignatureRecord:
        """
        Append a signature record. A signer who already signed is refused,
        except while the document holds exactly one signature (one party may
        sign both sides).
        """
        same_signer = sum(1 for s in doc.signatures if s.signer_id == signer_id)
        if same_signer and len(doc.signatures) > 1:
            raise SigningError(ErrorKind.SIGNER_ALREADY_SIGNED, document_id=doc.id, block_id=signer_id)
        record = SignatureRecord(id=self.ids.new_id(), signer_id=signer_id, signer_role=signer_role, **details)
        doc.signatures.append(record)
        doc.refresh_status()
        return record

    async def apply_signature(
        self,
        document_id: str,
        block_id: str,
        image_data: str,
        signer_name: Optional[str] = None,
        signer_email: Optional[str] = None,
    ) -> Document:
        async with self.locked(document_id):
            doc = self.get_document(document_id)
            blocks = doc.blocks
            block = find_block(blocks, block_id)
            if block.is_signed:
                logger.warning("Rejected stamp on signed block %s of document %s", block_id, document_id)
                raise SigningError(ErrorKind.BLOCK_ALREADY_SIGNED, document_id=document_id, block_id=block_id)
            try:
                image_bytes = decode_signature_image(image_data)
                source = self.storage.locate(doc.pdf_url or "")
                loop = asyncio.get_running_loop()
                signed = await loop.run_in_executor(
                    None, functools.partial(stamp_signature, source, image_bytes, block, self.storage)
                )
            except SigningError as e:
                e.context.setdefault("document_id", document_id)
                e.context.setdefault("block_id", block_id)
                logger.warning("Stamp failed for document %s block %s: %s", document_id, block_id, e)
                raise

            try:
                record = self.add_signature(
                    doc, block.id, block.signer_role,
                    signer_name=signer_name, signer_email=signer_email, image_data=image_data,
                )
                block.mark_signed(record.id)
            except SigningError as e:
                if e.kind is not ErrorKind.SIGNER_ALREADY_SIGNED:
                    raise
                # the PDF is already stamped; keep it
                logger.warning("Cannot add signature record for document %s block %s: %s", document_id, block_id, e)
                block.mark_signed(self.ids.new_id())

            doc.pdf_url = self.storage.url_for(signed)
            doc.files.append(signed.name)
            doc.blocks = blocks
            try:
                self.repository.save(doc)
            except Exception as e:
                self.storage.delete_many([signed])
                raise SigningError(ErrorKind.PROCESSING_FAILURE, f"Failed to record signed PDF: {e}", document_id=document_id) from e
        logger.info("Document %s block %s signed -> %s (%s)", document_id, block_id, signed.name, doc.status.value)
        return doc

    def footer_html(self, doc: Document) -> str:
        return build_footer_html(doc.signatures, doc.title, doc.location, doc.created_at.date())

    async def preview_footer(self, document_id: str) -> Optional[bytes]:
        """Signature page on its own; None when it cannot be rendered."""
        doc = self.get_document(document_id)
        return await render_footer(self.footer_html(doc), self.renderer)

    async def export(self, document_id: str) -> Tuple[Path, str]:
        """Merge the signature page onto the current PDF. Returns (path, download name)."""
        async with self.locked(document_id):
            doc = self.get_document(document_id)
            source = self.storage.locate(doc.pdf_url or "")
            try:
                merged = await merge_with_footer(source, self.footer_html(doc), self.renderer, self.storage)
            except SigningError as e:
                e.context.setdefault("document_id", document_id)
                logger.error("Export of document %s failed: %s", document_id, e)
                raise
            doc.files.append(merged.name)
            doc.export_url = self.storage.url_for(merged)
            self.repository.save(doc)
        return merged, f"{doc.id}_signed_{file_stamp()}.pdf"

    async def delete_document(self, document_id: str) -> None:
        async with self.locked(document_id):
            doc = self.get_document(document_id)
            paths = [self.storage.path_for(name) for name in doc.files]
            self.storage.delete_many(paths)
            self.repository.delete(document_id)
        logger.info("Document %s deleted", document_id)
