from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "google/gemini-2.0-flash-exp"
    llm_timeout_seconds: float = 30.0

    telegram_bot_token: str = ""
    telegram_webhook_secret: str = ""
    telegram_authorized_chat_id: str = ""

    db_path: str = "chatledger.json"

    confidence_threshold: float = 0.5
    conversation_ttl_minutes: int = 10
    history_limit: int = 10
    default_category_color: str = "#607D8B"


@lru_cache
def get_settings() -> Settings:
    return Settings()
