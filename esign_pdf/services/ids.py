from __future__ import annotations

import random
import uuid
from typing import Optional, Protocol

RECEIPT_PREFIX = "REC-"
CONTRACT_PREFIX = "3DO-"
PDF_PREFIX = "PDF-"

_PREFIXES = {"receipt": RECEIPT_PREFIX, "contract": CONTRACT_PREFIX, "pdf": PDF_PREFIX}


class IdGenerator(Protocol):
    def new_id(self) -> str: ...


class UuidIdGenerator:
    """Opaque ids for blocks and signature records."""
    def new_id(self) -> str:
        return str(uuid.uuid4())


class DocumentIdGenerator:
    """
    Human-readable document ids: type prefix plus six random digits,
    e.g. ``PDF-482913``. Pass a seeded ``random.Random`` for reproducible ids.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()

    def new_id(self, doc_type: str = "pdf") -> str:
        try:
            prefix = _PREFIXES[doc_type.lower()]
        except KeyError:
            raise ValueError(f"Unknown document type: {doc_type}") from None
        return f"{prefix}{self._rng.randrange(100000, 999999)}"
