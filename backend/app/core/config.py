from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Support Chat Backend"
    API_V1_STR: str = "/api/v1"

    # Leave unset to run on in-memory stores
    DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False

    # CORS
    ALLOWED_ORIGINS: str = "*"
    ENVIRONMENT: str = "development"

    # OpenAI (no key -> rule-based replies only)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    AI_REQUEST_TIMEOUT_SECONDS: float = 30.0
    CHAT_REPLY_MAX_TOKENS: int = 400
    CHAT_REPLY_TEMPERATURE: float = 0.7
    EMBEDDING_CACHE_MAX_ITEMS: int = 512
    EMBEDDING_CACHE_TTL_SECONDS: int = 3600

    # Vector index
    VECTOR_DIMENSIONS: int = 1536  # for text-embedding-3-small

    # Chat turn
    CHAT_MAX_MESSAGE_LENGTH: int = 2000
    CHAT_CONTEXT_WINDOW: int = 20
    CHAT_PROMPT_HISTORY: int = 5
    CHAT_PROMPT_PRODUCTS: int = 3
    CHAT_SEARCH_TOPK: int = 5
    CHAT_QUERY_MAX_TOKENS: int = 50
    CHAT_MAX_SUGGESTED_ACTIONS: int = 6
    AUTO_CREATE_CUSTOMERS: bool = True

    # Embedding synchronization
    EMBEDDING_SYNC_BATCH_SIZE: int = 10
    EMBEDDING_SYNC_BATCH_DELAY_MS: int = 1000
    EMBEDDING_SYNC_MAX_RETRIES: int = 3
    EMBEDDING_SYNC_RETRY_BASE_DELAY_MS: int = 1000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    DEBUG_LOG_FILE: str = "debug.log"
    DEBUG_LOG_ENABLED: bool = True

    # Load backend-local .env regardless of current working directory.
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        case_sensitive=True,
        extra="ignore",
    )

settings = Settings()
