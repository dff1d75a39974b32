import logging
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes
from .config import settings
from .errors import SigningError
from .logging_config import setup_logging
from .handlers import menu, sign_pdf
from .handlers.common import describe_error, help_, is_authorized, service

logger = logging.getLogger(__name__)

async def delete(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not is_authorized(update.effective_user.id):
        await update.message.reply_text("You are not authorized to use this bot."); return
    if not context.args:
        await update.message.reply_text("Usage: /delete <document id>"); return
    doc_id = context.args[0].strip()
    try: await service().delete_document(doc_id)
    except SigningError as e: await update.message.reply_text(describe_error(e)); return
    await update.message.reply_text(f"🗑 Document {doc_id} and its files were deleted.")

async def preview(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not is_authorized(update.effective_user.id):
        await update.message.reply_text("You are not authorized to use this bot."); return
    if not context.args:
        await update.message.reply_text("Usage: /preview <document id>"); return
    doc_id = context.args[0].strip()
    try: pdf = await service().preview_footer(doc_id)
    except SigningError as e: await update.message.reply_text(describe_error(e)); return
    if not pdf:
        await update.message.reply_text("🚨 The signature page could not be rendered right now."); return
    await update.message.reply_document(document=pdf, filename=f"{doc_id}_signatures.pdf")

def build_app() -> Application:
    app = Application.builder().token(settings.bot_token).build()

    app.add_handler(sign_pdf.handler())

    app.add_handler(CommandHandler("start", menu.start))
    app.add_handler(CommandHandler("help", help_))
    app.add_handler(CommandHandler("delete", delete))
    app.add_handler(CommandHandler("preview", preview))

    return app

def main():
    setup_logging()
    if not settings.bot_token:
        raise SystemExit("BOT_TOKEN is not set")
    app = build_app()
    logger.info("Bot is running... Press Ctrl+C to stop.")
    app.run_polling()

if __name__ == "__main__":
    main()
