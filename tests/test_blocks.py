import json

import pytest

from esign_pdf.errors import ErrorKind, SigningError
from esign_pdf.services.blocks import SignatureBlock, dump_blocks, find_block, load_blocks, replace_blocks


class CountingIds:
    def __init__(self):
        self.n = 0

    def new_id(self):
        self.n += 1
        return f"gen-{self.n}"


@pytest.mark.parametrize("item", [
    {"id": "a", "pageNumber": 1, "xPercent": 10, "yPercent": 20, "widthPercent": 30, "heightPercent": 5, "signerRole": "Bên A"},
    {"Id": "a", "PageNumber": 1, "XPercent": 10, "YPercent": 20, "WidthPercent": 30, "HeightPercent": 5, "SignerRole": "Bên A"},
    {"id": "a", "page_number": 1, "x_percent": 10, "y_percent": 20, "width_percent": 30, "height_percent": 5, "signer_role": "Bên A"},
])
def test_property_names_are_case_insensitive(item):
    b = SignatureBlock.from_dict(item)
    assert (b.id, b.page_number, b.x_percent, b.y_percent, b.width_percent, b.height_percent, b.signer_role) == \
        ("a", 1, 10.0, 20.0, 30.0, 5.0, "Bên A")
    assert not b.is_signed


def test_missing_id_is_generated():
    b = SignatureBlock.from_dict({"pageNumber": 0, "signerRole": "x"}, CountingIds())
    assert b.id == "gen-1"


def test_envelope_round_trip():
    blocks = [SignatureBlock(id="a", x_percent=1, y_percent=2, width_percent=3, height_percent=4, signer_role="Bên B")]
    raw = dump_blocks(blocks)
    assert json.loads(raw)["version"] == 1
    assert load_blocks(raw) == blocks


def test_legacy_array_still_loads():
    raw = json.dumps([{"Id": "old", "PageNumber": 2, "IsSigned": True, "SignatureId": "s1"}])
    (b,) = load_blocks(raw)
    assert b.id == "old" and b.page_number == 2 and b.is_signed and b.signature_id == "s1"


@pytest.mark.parametrize("raw", [None, "", "{not json", '"a string"', '{"Version": 1}'])
def test_unreadable_blobs_give_empty_list(raw):
    assert load_blocks(raw) == []


def test_replace_keeps_client_ids_and_signed_state():
    existing = [SignatureBlock(id="a", signer_role="Bên A", is_signed=True, signature_id="sig-1"),
                SignatureBlock(id="b", signer_role="Bên B")]
    incoming = [
        {"id": "a", "xPercent": 50, "signerRole": "Bên A", "isSigned": False},
        {"xPercent": 5, "signerRole": "Bên C", "isSigned": True},
    ]
    a, c = replace_blocks(incoming, existing, CountingIds())
    assert a.id == "a" and a.x_percent == 50 and a.is_signed and a.signature_id == "sig-1"
    # signing state never comes from the client
    assert c.id == "gen-1" and not c.is_signed and c.signature_id is None


def test_find_and_mark_signed():
    blocks = [SignatureBlock(id="a"), SignatureBlock(id="b")]
    b = find_block(blocks, "b")
    b.mark_signed("sig-9")
    assert b.is_signed and b.signature_id == "sig-9"
    with pytest.raises(SigningError) as exc:
        b.mark_signed("sig-10")
    assert exc.value.kind is ErrorKind.BLOCK_ALREADY_SIGNED
    assert b.signature_id == "sig-9"


def test_find_unknown_block():
    with pytest.raises(SigningError) as exc:
        find_block([SignatureBlock(id="a")], "zzz")
    assert exc.value.kind is ErrorKind.BLOCK_NOT_FOUND
    assert exc.value.status_code == 404
