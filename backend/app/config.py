# app/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings(BaseModel):
    """
    Process-wide configuration.

    Built once by load_settings() at startup and handed to every component
    that needs it (database init, token issuing, auth dependencies, AI provider).
    """
    # General app settings
    APP_NAME: str = "AI Chat Backend"
    env: str = "dev"
    log_level: str = "INFO"

    # Host & Port settings
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS origins for frontend
    CORS_ORIGINS: list[str] = ["*"]

    # Database (Tortoise URL); tables are auto-created when db_generate_schemas is on
    database_url: str = "sqlite://chat.sqlite3"
    db_generate_schemas: bool = True

    # JWT
    jwt_secret: str = "dev-secret"
    jwt_expire_minutes: int = 60 * 24

    # OpenAI-compatible chat completion API
    ai_api_key: str | None = None
    ai_base_url: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o-mini"
    ai_timeout: float = 60.0
    ai_system_prompt: str | None = None

    # Number of most recent messages sent to the model as context
    chat_history_limit: int = 20


def load_settings() -> Settings:
    """Read .env and the environment into a Settings instance."""
    load_dotenv()  # Load environment variables from .env file
    return Settings(
        APP_NAME=os.getenv("APP_NAME", "AI Chat Backend"),
        env=os.getenv("ENV", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        CORS_ORIGINS=_env_list("CORS_ORIGINS", "*"),
        database_url=os.getenv("DATABASE_URL", "sqlite://chat.sqlite3"),
        db_generate_schemas=_env_bool("DB_GENERATE_SCHEMAS", "true"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24))),
        ai_api_key=os.getenv("AI_API_KEY") or None,
        ai_base_url=os.getenv("AI_BASE_URL", "https://api.openai.com/v1"),
        ai_model=os.getenv("AI_MODEL", "gpt-4o-mini"),
        ai_timeout=float(os.getenv("AI_TIMEOUT", "60")),
        ai_system_prompt=os.getenv("AI_SYSTEM_PROMPT") or None,
        chat_history_limit=int(os.getenv("CHAT_HISTORY_LIMIT", "20")),
    )
