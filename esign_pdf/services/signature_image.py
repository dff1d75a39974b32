from __future__ import annotations

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from ..errors import ErrorKind, SigningError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("PNG", "JPEG")


def decode_signature_image(data: str) -> bytes:
    """
    Decode a signature capture sent as raw base64 or as a data URL
    (``data:image/png;base64,....``) into raw image bytes.
    Pixel content is not inspected here.
    """
    if data is None:
        raise SigningError(ErrorKind.EMPTY_IMAGE_DATA)
    payload = data.split(",", 1)[1] if "," in data else data
    # data URLs pasted from clients often carry line breaks
    payload = "".join(payload.split())
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning("Invalid base64 signature image data: %s", e)
        raise SigningError(ErrorKind.MALFORMED_IMAGE_DATA, f"Invalid base64 signature image data: {e}") from e
    if not image_bytes:
        raise SigningError(ErrorKind.EMPTY_IMAGE_DATA, "Signature image data is empty")
    return image_bytes


def encode_signature_image(image_bytes: bytes, mime: str = "image/png") -> str:
    """Inverse of decode_signature_image, producing a data URL."""
    return f"data:{mime};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def detect_image_format(image_bytes: bytes) -> str:
    """Return the raster format ("PNG" / "JPEG") or raise UNSUPPORTED_IMAGE_FORMAT."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise SigningError(ErrorKind.UNSUPPORTED_IMAGE_FORMAT, f"Error creating image from bytes: {e}") from e
    if fmt not in SUPPORTED_FORMATS:
        raise SigningError(ErrorKind.UNSUPPORTED_IMAGE_FORMAT, f"Unsupported image format: {fmt}")
    return fmt
