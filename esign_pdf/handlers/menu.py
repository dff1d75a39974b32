from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes
from .common import is_authorized

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    The main entry point. Shows the menu ONLY to authorized users.
    """
    if not is_authorized(update.effective_user.id):
        await update.effective_message.reply_text("You are not authorized to use this bot.")
        return

    kb = [
        [InlineKeyboardButton("📄 New PDF for signing", callback_data="act:new_pdf")],
    ]
    text = "Welcome to esign-pdf. Choose an action:"

    # handles both a new /start command and a "Back" button press
    if update.callback_query:
        await update.callback_query.answer()
        await update.callback_query.edit_message_text(text, reply_markup=InlineKeyboardMarkup(kb))
    else:
        await update.message.reply_text(text, reply_markup=InlineKeyboardMarkup(kb))
