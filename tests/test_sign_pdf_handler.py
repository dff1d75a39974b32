import asyncio
from types import SimpleNamespace

import pytest

from esign_pdf import bot
from esign_pdf.errors import ErrorKind, SigningError
from esign_pdf.handlers import sign_pdf
from esign_pdf.handlers.common import describe_error
from esign_pdf.handlers.sign_pdf import CHOOSE_BLOCK, WAIT_SIGNATURE, parse_block_lines
from conftest import StubRenderer, pdf_bytes


class FakeMessage:
    def __init__(self):
        self.texts = []
        self.documents = []

    async def reply_text(self, text, **kwargs):
        self.texts.append(text)

    async def reply_document(self, document, filename=None, **kwargs):
        self.documents.append((document, filename))


class FakeQuery:
    def __init__(self, data):
        self.data = data
        self.message = FakeMessage()
        self.edits = []

    async def answer(self):
        pass

    async def edit_message_text(self, text, **kwargs):
        self.edits.append(text)


def command(args):
    msg = FakeMessage()
    update = SimpleNamespace(effective_user=SimpleNamespace(id=42), message=msg, effective_message=msg)
    return update, SimpleNamespace(args=args, user_data={}), msg


def prepared_document(svc, blocks):
    async def flow():
        doc = await svc.upload(pdf_bytes(), "application/pdf")
        await svc.update_blocks(doc.id, blocks)
        return doc
    return asyncio.run(flow())


def test_parses_lines_with_multiword_roles():
    blocks = parse_block_lines("1 10 80 30 10 Bên A\n\n2 60,5 80 30 10 Bên B (đại diện)\n")
    assert blocks == [
        {"page_number": 0, "x_percent": 10.0, "y_percent": 80.0, "width_percent": 30.0, "height_percent": 10.0, "signer_role": "Bên A"},
        {"page_number": 1, "x_percent": 60.5, "y_percent": 80.0, "width_percent": 30.0, "height_percent": 10.0, "signer_role": "Bên B (đại diện)"},
    ]


@pytest.mark.parametrize("text,fragment", [
    ("1 10 80 30 Bên A", "Line 1"),
    ("1 10 80 30 10 A\nx 10 80 30 10 B", "Line 2"),
    ("0 10 80 30 10 A", "pages start at 1"),
    ("   \n", "No signature blocks"),
    ("1 nan 80 30 10 A", "finite"),
    ("1 10 80 inf 10 A", "finite"),
    ("1 10 -inf 30 10 A", "finite"),
])
def test_bad_lines_are_reported(text, fragment):
    with pytest.raises(ValueError) as exc:
        parse_block_lines(text)
    assert fragment in str(exc.value)


def test_error_text_hides_internal_detail():
    assert describe_error(SigningError(ErrorKind.PAGE_OUT_OF_RANGE, "page 5 of /srv/x.pdf")) == \
        "❌ The signature block points to a page that does not exist."
    text = describe_error(SigningError(ErrorKind.PROCESSING_FAILURE, "fitz said no about /srv/x.pdf"))
    assert text.startswith("🚨") and "/srv" not in text


def test_stale_block_button_is_not_reported_as_signed(svc, monkeypatch):
    monkeypatch.setattr(sign_pdf, "service", lambda: svc)
    doc = prepared_document(svc, [{"id": "a", "xPercent": 10, "yPercent": 80, "widthPercent": 30, "heightPercent": 10, "signerRole": "Bên A"}])
    q = FakeQuery("block:removed-block")
    update = SimpleNamespace(callback_query=q)
    context = SimpleNamespace(user_data={"doc_id": doc.id})

    assert asyncio.run(sign_pdf.choose_block(update, context)) == CHOOSE_BLOCK
    assert q.message.texts == ["That block no longer exists, the list was changed. Pick one below."]
    assert "block_id" not in context.user_data


def test_open_block_asks_for_signature(svc, monkeypatch):
    monkeypatch.setattr(sign_pdf, "service", lambda: svc)
    doc = prepared_document(svc, [{"id": "a", "xPercent": 10, "yPercent": 80, "widthPercent": 30, "heightPercent": 10, "signerRole": "Bên A"}])
    q = FakeQuery("block:a")
    context = SimpleNamespace(user_data={"doc_id": doc.id})

    assert asyncio.run(sign_pdf.choose_block(SimpleNamespace(callback_query=q), context)) == WAIT_SIGNATURE
    assert context.user_data["block_id"] == "a"
    assert "Bên A" in q.edits[0]


def test_preview_command_sends_signature_page(svc, monkeypatch):
    monkeypatch.setattr(bot, "service", lambda: svc)
    monkeypatch.setattr(bot, "is_authorized", lambda uid: True)
    doc = prepared_document(svc, [])
    update, context, msg = command([doc.id])

    asyncio.run(bot.preview(update, context))
    ((document, filename),) = msg.documents
    assert filename == f"{doc.id}_signatures.pdf"
    assert document.startswith(b"%PDF")
    assert svc.renderer.calls and "Chữ ký các bên" in svc.renderer.calls[0]


def test_preview_command_reports_render_failure(svc, monkeypatch):
    svc.renderer = StubRenderer(error=RuntimeError("no browser"))
    monkeypatch.setattr(bot, "service", lambda: svc)
    monkeypatch.setattr(bot, "is_authorized", lambda uid: True)
    doc = prepared_document(svc, [])
    update, context, msg = command([doc.id])

    asyncio.run(bot.preview(update, context))
    assert msg.documents == []
    assert msg.texts == ["🚨 The signature page could not be rendered right now."]


def test_preview_command_unknown_document(svc, monkeypatch):
    monkeypatch.setattr(bot, "service", lambda: svc)
    monkeypatch.setattr(bot, "is_authorized", lambda uid: True)
    update, context, msg = command(["PDF-000000"])

    asyncio.run(bot.preview(update, context))
    assert msg.texts == ["❌ Document not found."]
