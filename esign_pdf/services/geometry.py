from __future__ import annotations

import math
from dataclasses import dataclass

from ..errors import ErrorKind, SigningError

# rounding slack when a block ends exactly on the page edge
_EDGE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class PdfRect:
    """Absolute rectangle in PDF points (1 pt = 1/72 inch), origin bottom-left."""
    x: float
    y: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    def to_top_left(self, page_height: float) -> tuple[float, float, float, float]:
        """(x0, y0, x1, y1) with the origin at the top-left, y growing downwards."""
        return self.x, page_height - self.top, self.right, page_height - self.y


def to_pdf_rect(block, page_width: float, page_height: float) -> PdfRect:
    """
    Convert a block's percentage coordinates (top-left origin) into an
    absolute rectangle on a page of the given size (bottom-left origin).

    The result always lies inside ``[0, page_width] x [0, page_height]``;
    anything else (including NaN or infinite percentages) is INVALID_GEOMETRY.
    """
    x = page_width * block.x_percent / 100.0
    width = page_width * block.width_percent / 100.0
    height = page_height * block.height_percent / 100.0
    # UI measures Y from the page top, PDF from the page bottom
    y = page_height * (100.0 - block.y_percent - block.height_percent) / 100.0

    finite = all(math.isfinite(v) for v in (x, y, width, height))
    if (
        not finite
        or x < 0 or y < 0 or width <= 0 or height <= 0
        or x + width > page_width + _EDGE_TOLERANCE
        or y + height > page_height + _EDGE_TOLERANCE
    ):
        raise SigningError(
            ErrorKind.INVALID_GEOMETRY,
            f"Invalid signature block coordinates: x={x}, y={y}, width={width}, height={height}",
            block_id=getattr(block, "id", None),
            page_index=getattr(block, "page_number", None),
        )
    return PdfRect(x, y, width, height)
