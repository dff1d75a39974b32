import math
from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import (
    CommandHandler, ConversationHandler, MessageHandler, CallbackQueryHandler,
    ContextTypes, filters
)
from .common import describe_error, is_authorized, service
from ..errors import ErrorKind, SigningError
from ..services.signature_image import encode_signature_image

# States for the conversation
WAIT_PDF, WAIT_BLOCKS, CHOOSE_BLOCK, WAIT_SIGNATURE = range(4)

_RETRY_IMAGE = (ErrorKind.UNSUPPORTED_IMAGE_FORMAT, ErrorKind.MALFORMED_IMAGE_DATA, ErrorKind.EMPTY_IMAGE_DATA)

BLOCKS_HELP = (
    "Now send the signature blocks, one per line:\n"
    "`page x y width height role`\n\n"
    "Page starts at 1, the rest are percents of the page measured from the top-left corner.\n"
    "Example:\n`1 10 80 30 10 Bên A`\n`1 60 80 30 10 Bên B`"
)

def parse_block_lines(text: str) -> list:
    """Turn chat lines ``page x y w h role`` into block dicts (page made 0-based)."""
    blocks = []
    for n, line in enumerate((text or "").splitlines(), start=1):
        line = line.strip()
        if not line: continue
        parts = line.split(None, 5)
        if len(parts) < 6:
            raise ValueError(f"Line {n}: expected 'page x y width height role', got {line!r}")
        try:
            page = int(parts[0]); x, y, w, h = (float(p.replace(",", ".")) for p in parts[1:5])
        except ValueError:
            raise ValueError(f"Line {n}: page must be a whole number and x y width height numbers: {line!r}")
        if not all(math.isfinite(v) for v in (x, y, w, h)):
            raise ValueError(f"Line {n}: x y width height must be finite numbers: {line!r}")
        if page < 1:
            raise ValueError(f"Line {n}: pages start at 1")
        blocks.append({"page_number": page - 1, "x_percent": x, "y_percent": y, "width_percent": w, "height_percent": h, "signer_role": parts[5].strip()})
    if not blocks:
        raise ValueError("No signature blocks found.")
    return blocks

def _blocks_keyboard(doc) -> InlineKeyboardMarkup:
    kb = [[InlineKeyboardButton(f"{'✅' if b.is_signed else '✍️'} p.{b.page_number + 1} {b.signer_role}", callback_data=f"block:{b.id}")] for b in doc.blocks]
    kb.append([InlineKeyboardButton("📤 Export signed PDF", callback_data="doc:export")])
    return InlineKeyboardMarkup(kb)

def _summary(doc) -> str:
    signed = sum(1 for b in doc.blocks if b.is_signed)
    return f"Document `{doc.id}` ({doc.status.value}), {signed}/{len(doc.blocks)} blocks signed.\nPick a block to sign or export the document."

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    q = update.callback_query; await q.answer()
    if not is_authorized(update.effective_user.id):
        await q.edit_message_text("You are not authorized to use this bot."); return ConversationHandler.END
    context.user_data.clear()
    await q.edit_message_text("Please upload the PDF to be signed.")
    return WAIT_PDF

async def join_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    if not is_authorized(update.effective_user.id):
        await update.message.reply_text("You are not authorized to use this bot."); return ConversationHandler.END
    if not context.args:
        await update.message.reply_text("Usage: /sign <document id>"); return ConversationHandler.END
    try: doc = service().get_document(context.args[0].strip())
    except SigningError as e:
        await update.message.reply_text(describe_error(e)); return ConversationHandler.END
    context.user_data.clear(); context.user_data['doc_id'] = doc.id
    await update.message.reply_text(_summary(doc), parse_mode="Markdown", reply_markup=_blocks_keyboard(doc))
    return CHOOSE_BLOCK

async def handle_pdf(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    document = update.message.document
    svc = service()
    try:
        svc.storage.validate_upload(document.file_size or 0, document.mime_type)
        file = await document.get_file()
        data = bytes(await file.download_as_bytearray())
        doc = await svc.upload(data, document.mime_type, title=document.file_name or "")
    except SigningError as e:
        await update.message.reply_text(describe_error(e)); return WAIT_PDF
    context.user_data['doc_id'] = doc.id
    await update.message.reply_text(f"PDF saved as document `{doc.id}`.\n\n{BLOCKS_HELP}", parse_mode="Markdown")
    return WAIT_BLOCKS

async def handle_blocks(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try: incoming = parse_block_lines(update.message.text)
    except ValueError as e:
        await update.message.reply_text(f"❌ {e}"); return WAIT_BLOCKS
    doc_id = context.user_data['doc_id']
    try:
        await service().update_blocks(doc_id, incoming)
        doc = service().get_document(doc_id)
    except SigningError as e:
        await update.message.reply_text(describe_error(e)); return ConversationHandler.END
    await update.message.reply_text(_summary(doc), parse_mode="Markdown", reply_markup=_blocks_keyboard(doc))
    return CHOOSE_BLOCK

async def choose_block(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    q = update.callback_query; await q.answer()
    block_id = q.data.split(":", 1)[1]
    doc = service().get_document(context.user_data['doc_id'])
    block = next((b for b in doc.blocks if b.id == block_id), None)
    if block is None:
        await q.message.reply_text("That block no longer exists, the list was changed. Pick one below.", reply_markup=_blocks_keyboard(doc))
        return CHOOSE_BLOCK
    if block.is_signed:
        await q.message.reply_text("That block is already signed. Pick another one.", reply_markup=_blocks_keyboard(doc))
        return CHOOSE_BLOCK
    context.user_data['block_id'] = block_id
    await q.edit_message_text(f"Signing as *{block.signer_role}*.\nSend the signature as a photo or a PNG/JPEG file.", parse_mode="Markdown")
    return WAIT_SIGNATURE

async def handle_signature(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    msg = update.message
    if msg.photo: file, mime = await msg.photo[-1].get_file(), "image/jpeg"
    else: file, mime = await msg.document.get_file(), msg.document.mime_type or "image/png"
    image_data = encode_signature_image(bytes(await file.download_as_bytearray()), mime)
    user = update.effective_user
    doc_id, block_id = context.user_data['doc_id'], context.user_data.get('block_id')
    await msg.reply_text("Stamping signature...")
    try: doc = await service().apply_signature(doc_id, block_id, image_data, signer_name=user.full_name)
    except SigningError as e:
        await msg.reply_text(describe_error(e))
        if e.kind in _RETRY_IMAGE: return WAIT_SIGNATURE
        doc = service().get_document(doc_id)
    await msg.reply_text(_summary(doc), parse_mode="Markdown", reply_markup=_blocks_keyboard(doc))
    return CHOOSE_BLOCK

async def export(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    q = update.callback_query; await q.answer()
    doc_id = context.user_data['doc_id']
    await q.edit_message_text("Preparing the signed PDF...")
    try: path, filename = await service().export(doc_id)
    except SigningError as e:
        await q.message.reply_text(describe_error(e)); return CHOOSE_BLOCK
    with open(path, 'rb') as f: await q.message.reply_document(document=f, filename=filename)
    await q.message.reply_text(f"✅ Done. Others can sign with `/sign {doc_id}`.", parse_mode="Markdown")
    return ConversationHandler.END

async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    await update.effective_message.reply_text("Operation cancelled.")
    return ConversationHandler.END

def handler() -> ConversationHandler:
    return ConversationHandler(
        entry_points=[CallbackQueryHandler(start, pattern="^act:new_pdf$"), CommandHandler("sign", join_document)],
        states={
            WAIT_PDF: [MessageHandler(filters.Document.ALL, handle_pdf)],
            WAIT_BLOCKS: [MessageHandler(filters.TEXT & ~filters.COMMAND, handle_blocks)],
            CHOOSE_BLOCK: [CallbackQueryHandler(choose_block, pattern="^block:.+"), CallbackQueryHandler(export, pattern="^doc:export$")],
            WAIT_SIGNATURE: [MessageHandler(filters.PHOTO | filters.Document.IMAGE, handle_signature)],
        },
        fallbacks=[CommandHandler("cancel", cancel)],
    )
