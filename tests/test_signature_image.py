import base64

import pytest

from esign_pdf.errors import ErrorCategory, ErrorKind, SigningError
from esign_pdf.services.signature_image import decode_signature_image, detect_image_format, encode_signature_image
from conftest import image_bytes


def test_data_url_and_raw_base64_decode_the_same(red_png):
    raw = base64.b64encode(red_png).decode()
    assert decode_signature_image(f"data:image/png;base64,{raw}") == red_png
    assert decode_signature_image(raw) == red_png


def test_encode_produces_data_url(red_png):
    url = encode_signature_image(red_png)
    assert url.startswith("data:image/png;base64,")
    assert decode_signature_image(url) == red_png


def test_line_breaks_are_ignored(red_png):
    raw = base64.b64encode(red_png).decode()
    wrapped = "\n".join(raw[i:i + 10] for i in range(0, len(raw), 10))
    assert decode_signature_image("data:image/png;base64," + wrapped) == red_png


@pytest.mark.parametrize("data", ["data:image/png;base64,not*base64!", "abc"])
def test_malformed_base64(data):
    with pytest.raises(SigningError) as exc:
        decode_signature_image(data)
    assert exc.value.kind is ErrorKind.MALFORMED_IMAGE_DATA
    assert exc.value.category is ErrorCategory.INPUT


@pytest.mark.parametrize("data", [None, "", "data:image/png;base64,"])
def test_empty_payload(data):
    with pytest.raises(SigningError) as exc:
        decode_signature_image(data)
    assert exc.value.kind is ErrorKind.EMPTY_IMAGE_DATA


def test_detects_png_and_jpeg():
    assert detect_image_format(image_bytes("PNG")) == "PNG"
    assert detect_image_format(image_bytes("JPEG")) == "JPEG"


@pytest.mark.parametrize("data", [b"%PDF-1.4 not an image", image_bytes("GIF")])
def test_other_formats_rejected(data):
    with pytest.raises(SigningError) as exc:
        detect_image_format(data)
    assert exc.value.kind is ErrorKind.UNSUPPORTED_IMAGE_FORMAT
