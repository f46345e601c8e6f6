from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- Mercado Libre OAuth ---
    APP_ID: Optional[str] = None
    CLIENT_SECRET: Optional[str] = None
    REDIRECT_URI: Optional[str] = None
    AUTH_URL: str = "https://auth.mercadolibre.com.ar/authorization"
    BASE_URL: str = "https://api.mercadolibre.com"

    # Static tokens are only a bootstrap, TOKEN_FILE wins once written
    ACCESS_TOKEN: Optional[str] = None
    REFRESH_TOKEN: Optional[str] = None
    TOKEN_FILE: str = "tokens.json"

    # --- Tracking ---
    PRODUCT_ID: Optional[str] = None
    COMPETITION_SOURCE: Literal["product", "item"] = "product"
    LEADER_KEY: Literal["seller", "item"] = "seller"
    STATE_FILE: str = "leader_state.json"
    TOP_N: int = 5

    # --- Scheduling ---
    SLEEP_TIME: int = 300
    CYCLE_TIMEOUT: int = 120
    TITLE_LOOKUP_WORKERS: int = 5
    LOOKUP_TIMEOUT: float = 10.0
    HTTP_TIMEOUT: float = 30.0

    # --- Notifications ---
    NOTIFIER: Literal["telegram", "whatsapp", "none"] = "telegram"
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    WHATSAPP_PHONE: Optional[str] = None
    WHATSAPP_API_KEY: Optional[str] = None
    WHATSAPP_API_URL: str = "https://api.callmebot.com/whatsapp.php"

    # --- Debug server ---
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    LOG_LEVEL: str = "INFO"


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
