"""
Application configuration — reads all settings from environment variables.
"""

import os
from typing import List

from loguru import logger
from pydantic_settings import BaseSettings

_PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "Clinic FAQ Chatbot"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: str = "*"
    ADMIN_TOKEN: str = ""

    # ── OpenAI ───────────────────────────────────────────
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_MAX_TOKENS: int = 1000
    OPENAI_TEMPERATURE: float = 0.7

    # ── Meta (Messenger / Instagram) ─────────────────────
    META_PAGE_ACCESS_TOKEN: str = ""
    META_VERIFY_TOKEN: str = ""
    META_APP_SECRET: str = ""
    META_GRAPH_API_URL: str = "https://graph.facebook.com/v18.0"

    # ── Rate Limiting ────────────────────────────────────
    RATE_LIMIT_PER_MINUTE: int = 60

    # ── Logging ──────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = os.path.join(_PACKAGE_ROOT, "logs")
    LOG_TO_FILE: bool = True

    # ── Knowledge base ───────────────────────────────────
    DATA_DIR: str = os.path.join(_PACKAGE_ROOT, "data")
    FAQ_ZH_FILE: str = "faq.json"
    FAQ_EN_FILE: str = "faq-en.json"
    FAQ_THRESHOLD_ZH: int = 8
    FAQ_THRESHOLD_EN: int = 3

    # ── Sessions ─────────────────────────────────────────
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60
    SESSION_MAX_PER_USER: int = 5
    SESSION_HISTORY_LIMIT: int = 50
    SESSION_CLEANUP_INTERVAL_SECONDS: int = 60 * 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def faq_path(self, locale: str) -> str:
        filename = self.FAQ_EN_FILE if locale == "en" else self.FAQ_ZH_FILE
        return os.path.join(self.DATA_DIR, filename)


settings = Settings()

_REQUIRED_IN_PRODUCTION = (
    "OPENAI_API_KEY",
    "META_PAGE_ACCESS_TOKEN",
    "META_VERIFY_TOKEN",
)


def validate_config() -> List[str]:
    """Return the production variables that are not set; warn but never abort."""
    missing = [name for name in _REQUIRED_IN_PRODUCTION if not getattr(settings, name)]
    if missing:
        logger.warning(f"Missing environment variables: {', '.join(missing)} — running in degraded mode")
    return missing
