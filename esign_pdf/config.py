from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(usecwd=True))

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True)

    bot_token: str = Field("", alias="BOT_TOKEN")
    authorized_users_raw: str = Field("", alias="AUTHORIZED_USERS")
    pdf_storage_path: str = Field("./files_cash/pdfs", alias="PDF_STORAGE_PATH")
    pdf_url_prefix: str = Field("/api/documents/pdf/", alias="PDF_URL_PREFIX")
    document_store_path: str = Field("./.cache/documents.json", alias="DOCUMENT_STORE_PATH")
    max_upload_bytes: int = Field(50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    browser: str = Field("firefox", alias="FOOTER_BROWSER")
    browser_binary_path: Optional[str] = Field(None, alias="BROWSER_BINARY_PATH")
    browser_driver_path: Optional[str] = Field(None, alias="BROWSER_DRIVER_PATH")
    footer_settle_timeout: float = Field(5.0, alias="FOOTER_SETTLE_TIMEOUT")
    footer_location: str = Field("TP. Cần Thơ", alias="FOOTER_LOCATION")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @property
    def authorized_users(self) -> List[int]:
        return [int(x) for x in self.authorized_users_raw.split(',') if x.strip().isdigit()]

settings = Settings()
