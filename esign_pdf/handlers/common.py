from functools import lru_cache
from telegram import Update
from telegram.ext import ContextTypes
from ..config import settings
from ..errors import ErrorCategory, SigningError
from ..services.document_store import JsonDocumentStore
from ..services.signing import SigningService

WELCOME = (
    "Welcome to esign-pdf.\n\n"
    "Commands:\n"
    "• /start – main menu\n"
    "• /sign <document id> – sign an existing document\n"
    "• /delete <document id> – delete a document and its files\n"
    "• /preview <document id> – show the signature page\n"
    "• /help – show help"
)

@lru_cache(maxsize=1)
def service() -> SigningService:
    return SigningService(JsonDocumentStore())

def is_authorized(user_id: int) -> bool:
    return user_id in settings.authorized_users

def describe_error(e: SigningError) -> str:
    if e.category is ErrorCategory.INPUT:
        return f"❌ {e.user_message}"
    return f"🚨 {e.user_message} Please try again later."

async def help_(update: Update, _: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(WELCOME)
