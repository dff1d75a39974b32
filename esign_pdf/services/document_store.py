from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .blocks import SignatureBlock, dump_blocks, load_blocks
from ..config import settings
from ..utils.dates import utc_now

logger = logging.getLogger(__name__)


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    PARTIALLY_SIGNED = "partially_signed"
    SIGNED = "signed"


@dataclass
class SignatureRecord:
    id: str
    signer_id: str
    signer_role: str
    signer_name: Optional[str] = None
    signer_email: Optional[str] = None
    image_data: Optional[str] = None   # data URL of the stamped image
    typed_text: Optional[str] = None
    font_family: Optional[str] = None
    signed_at: datetime = field(default_factory=utc_now)


@dataclass
class Document:
    id: str
    title: str = ""
    pdf_url: Optional[str] = None
    export_url: Optional[str] = None   # latest merged artifact
    blocks_json: Optional[str] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    location: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    signed_at: Optional[datetime] = None
    files: List[str] = field(default_factory=list)
    signatures: List[SignatureRecord] = field(default_factory=list)

    @property
    def blocks(self) -> List[SignatureBlock]:
        return load_blocks(self.blocks_json)

    @blocks.setter
    def blocks(self, value: List[SignatureBlock]) -> None:
        self.blocks_json = dump_blocks(value)

    def refresh_status(self) -> None:
        count = len(self.signatures)
        if count == 0:
            self.status = DocumentStatus.DRAFT
        elif count == 1:
            self.status = DocumentStatus.PARTIALLY_SIGNED
        else:
            if self.status != DocumentStatus.SIGNED:
                self.signed_at = utc_now()
            self.status = DocumentStatus.SIGNED


class DocumentRepository(Protocol):
    def get(self, document_id: str) -> Optional[Document]: ...
    def exists(self, document_id: str) -> bool: ...
    def save(self, document: Document) -> None: ...
    def delete(self, document_id: str) -> None: ...


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_json(doc: Document) -> dict:
    data = asdict(doc)
    data["status"] = doc.status.value
    data["created_at"] = doc.created_at.isoformat()
    data["signed_at"] = doc.signed_at.isoformat() if doc.signed_at else None
    for raw, sig in zip(data["signatures"], doc.signatures):
        raw["signed_at"] = sig.signed_at.isoformat()
    return data


def _from_json(data: dict) -> Document:
    sigs = [SignatureRecord(**{**s, "signed_at": _dt(s.get("signed_at")) or utc_now()}) for s in data.get("signatures", [])]
    return Document(
        id=data["id"],
        title=data.get("title", ""),
        pdf_url=data.get("pdf_url"),
        export_url=data.get("export_url"),
        blocks_json=data.get("blocks_json"),
        status=DocumentStatus(data.get("status", DocumentStatus.DRAFT.value)),
        location=data.get("location"),
        created_at=_dt(data.get("created_at")) or utc_now(),
        signed_at=_dt(data.get("signed_at")),
        files=list(data.get("files", [])),
        signatures=sigs,
    )


class JsonDocumentStore:
    """Documents kept in one JSON file, read and rewritten under a lock."""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.document_store_path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, dict]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error("Document store %s is corrupt: %s", self._path, e)
            raise

    def _dump(self, data: Dict[str, dict]) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, document_id: str) -> Optional[Document]:
        with self._lock:
            raw = self._load().get(document_id)
        return _from_json(raw) if raw else None

    def exists(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._load()

    def save(self, document: Document) -> None:
        with self._lock:
            data = self._load()
            data[document.id] = _to_json(document)
            self._dump(data)

    def delete(self, document_id: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(document_id, None) is not None:
                self._dump(data)
