import math
import random

import pytest

from esign_pdf.errors import ErrorKind, SigningError
from esign_pdf.services.blocks import SignatureBlock
from esign_pdf.services.geometry import PdfRect, to_pdf_rect

PAGES = [(595, 842), (842, 595), (612, 792), (1190.55, 1683.78)]


def block(x, y, w, h, page=0):
    return SignatureBlock(id="b1", page_number=page, x_percent=x, y_percent=y, width_percent=w, height_percent=h)


def random_blocks(n=200, seed=20240501):
    rng = random.Random(seed)
    out = []
    for _ in range(n):
        x, y = rng.uniform(0, 99), rng.uniform(0, 99)
        out.append((x, y, rng.uniform(0.01, 100 - x), rng.uniform(0.01, 100 - y)))
    # blocks touching the page edges
    out += [(0, 0, 100, 100), (0, 90, 10, 10), (90, 0, 10, 10), (33.3, 66.7, 66.7, 33.3)]
    return out


@pytest.mark.parametrize("page", PAGES)
@pytest.mark.parametrize("x,y,w,h", [(10, 80, 30, 10), (0, 0, 100, 100), (50, 25, 20, 5), (0, 90, 10, 10)])
def test_rect_follows_percentages(page, x, y, w, h):
    pw, ph = page
    r = to_pdf_rect(block(x, y, w, h), pw, ph)
    assert r.x == pytest.approx(pw * x / 100)
    assert r.width == pytest.approx(pw * w / 100)
    assert r.height == pytest.approx(ph * h / 100)
    # the top edge sits y% below the top of the page
    assert r.top == pytest.approx(ph * (100 - y) / 100)


@pytest.mark.parametrize("page", PAGES)
def test_valid_blocks_stay_on_the_page(page):
    pw, ph = page
    for x, y, w, h in random_blocks():
        r = to_pdf_rect(block(x, y, w, h), pw, ph)
        assert 0 <= r.x and r.right <= pw + 1e-6, (x, y, w, h)
        assert 0 <= r.y and r.top <= ph + 1e-6, (x, y, w, h)
        assert r.width > 0 and r.height > 0
        assert all(math.isfinite(v) for v in (r.x, r.y, r.width, r.height))


def test_a4_example():
    r = to_pdf_rect(block(10, 80, 30, 10), 595, 842)
    assert r.x == pytest.approx(59.5)
    assert r.y == pytest.approx(84.2)
    assert r.width == pytest.approx(178.5)
    assert r.height == pytest.approx(84.2)


def test_top_left_conversion():
    r = PdfRect(10, 20, 30, 40)
    assert r.to_top_left(100) == (10, 40, 40, 80)


@pytest.mark.parametrize("x,y,w,h", [
    (0, 0, 0, 10),     # zero width
    (0, 0, 10, 0),     # zero height
    (-5, 0, 10, 10),
    (0, 95, 10, 10),   # runs off the bottom
    (0, 0, -1, 10),
    (150, 10, 30, 10),  # starts right of the page
    (80, 10, 30, 10),   # runs off the right edge
    (0, -5, 10, 10),    # runs off the top
    (math.nan, 80, 30, 10),
    (10, math.nan, 30, 10),
    (10, 80, math.nan, 10),
    (10, 80, 30, math.nan),
    (10, 80, math.inf, 10),
    (10, 80, 30, math.inf),
    (-math.inf, 80, 30, 10),
])
def test_degenerate_blocks_rejected(x, y, w, h):
    with pytest.raises(SigningError) as exc:
        to_pdf_rect(block(x, y, w, h, page=2), 595, 842)
    assert exc.value.kind is ErrorKind.INVALID_GEOMETRY
    assert exc.value.context["block_id"] == "b1"
    assert exc.value.context["page_index"] == 2
    assert exc.value.status_code == 400
