from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from .ids import IdGenerator, UuidIdGenerator
from ..errors import ErrorKind, SigningError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# wire name -> attribute; keys are matched after lower-casing and dropping "_"
_FIELDS = {
    "id": "id",
    "pagenumber": "page_number",
    "xpercent": "x_percent",
    "ypercent": "y_percent",
    "widthpercent": "width_percent",
    "heightpercent": "height_percent",
    "signerrole": "signer_role",
    "issigned": "is_signed",
    "signatureid": "signature_id",
}
_WIRE_NAMES = {
    "id": "id",
    "page_number": "pageNumber",
    "x_percent": "xPercent",
    "y_percent": "yPercent",
    "width_percent": "widthPercent",
    "height_percent": "heightPercent",
    "signer_role": "signerRole",
    "is_signed": "isSigned",
    "signature_id": "signatureId",
}


@dataclass
class SignatureBlock:
    """
    Placeholder region on a PDF page. Coordinates are percentages (0-100) of
    the page size, Y measured from the top of the page.
    """
    id: str
    page_number: int = 0
    x_percent: float = 0.0
    y_percent: float = 0.0
    width_percent: float = 0.0
    height_percent: float = 0.0
    signer_role: str = ""
    is_signed: bool = False
    signature_id: Optional[str] = None

    def mark_signed(self, signature_id: str) -> None:
        if self.is_signed:
            raise SigningError(ErrorKind.BLOCK_ALREADY_SIGNED, block_id=self.id)
        self.is_signed = True
        self.signature_id = signature_id

    def to_dict(self) -> dict:
        return {wire: getattr(self, attr) for attr, wire in _WIRE_NAMES.items()}

    @classmethod
    def from_dict(cls, data: dict, id_generator: Optional[IdGenerator] = None) -> "SignatureBlock":
        values: dict[str, Any] = {}
        for key, value in data.items():
            attr = _FIELDS.get(str(key).replace("_", "").lower())
            if attr:
                values[attr] = value
        block_id = values.get("id")
        if not block_id:
            block_id = (id_generator or UuidIdGenerator()).new_id()
        sig = values.get("signature_id")
        return cls(
            id=str(block_id),
            page_number=int(values.get("page_number") or 0),
            x_percent=float(values.get("x_percent") or 0),
            y_percent=float(values.get("y_percent") or 0),
            width_percent=float(values.get("width_percent") or 0),
            height_percent=float(values.get("height_percent") or 0),
            signer_role=str(values.get("signer_role") or ""),
            is_signed=bool(values.get("is_signed") or False),
            signature_id=str(sig) if sig else None,
        )


def load_blocks(raw: Optional[str]) -> List[SignatureBlock]:
    """
    Parse a stored block list. Accepts the versioned envelope
    ``{"version": 1, "blocks": [...]}`` and bare legacy arrays; property names
    are matched case-insensitively. Unreadable blobs yield an empty list.
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Failed to deserialize signature blocks: %s", e)
        return []
    if isinstance(data, dict):
        lowered = {str(k).lower(): v for k, v in data.items()}
        data = lowered.get("blocks") or []
    if not isinstance(data, list):
        logger.warning("Signature block blob is not a list, ignoring")
        return []
    return [SignatureBlock.from_dict(item) for item in data if isinstance(item, dict)]


def dump_blocks(blocks: Iterable[SignatureBlock]) -> str:
    return json.dumps(
        {"version": SCHEMA_VERSION, "blocks": [b.to_dict() for b in blocks]},
        ensure_ascii=False,
    )


def replace_blocks(
    incoming: Iterable[dict],
    existing: Iterable[SignatureBlock] = (),
    id_generator: Optional[IdGenerator] = None,
) -> List[SignatureBlock]:
    """
    Build the new block list from an owner edit (whole-list replace).

    Ids sent by the client are kept, missing ids are generated. Signing state
    is never taken from the client: it is carried over from the existing block
    with the same id, so an edit cannot un-sign a block.
    """
    previous = {b.id: b for b in existing}
    blocks = []
    for item in incoming:
        block = SignatureBlock.from_dict(item, id_generator)
        old = previous.get(block.id)
        block.is_signed = bool(old and old.is_signed)
        block.signature_id = old.signature_id if old else None
        blocks.append(block)
    return blocks


def find_block(blocks: Iterable[SignatureBlock], block_id: str) -> SignatureBlock:
    for b in blocks:
        if b.id == block_id:
            return b
    raise SigningError(ErrorKind.BLOCK_NOT_FOUND, f"Signature block {block_id} not found", block_id=block_id)
