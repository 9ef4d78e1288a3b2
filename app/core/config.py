"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "TubeBrief"
    APP_ENV: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = True
    APP_VERSION: str = "0.1.0"

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in v.split(",")]

    # ================================
    # Database Configuration
    # ================================
    DATABASE_URL: str = Field(..., description="PostgreSQL connection string")
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_CREATE_TABLES: bool = False  # create_all on startup (development only)

    # ================================
    # Redis Configuration
    # ================================
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_CACHE_ENABLED: bool = True

    # ================================
    # JWT Authentication
    # ================================
    # Tokens are issued by the identity provider; we only verify them.
    JWT_SECRET_KEY: str = Field(..., min_length=32)
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days

    # ================================
    # Language Model Configuration
    # ================================
    LLM_PROVIDER: Literal["openai", "anthropic"] = "openai"

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-3.5-turbo-0125"

    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-20241022"

    # Audio transcription always uses OpenAI, whatever LLM_PROVIDER says
    OPENAI_TRANSCRIPTION_MODEL: str = "whisper-1"
    AUDIO_UPLOAD_MAX_BYTES: int = 25 * 1024 * 1024
    CHAT_MAX_TOKENS: int = Field(1000, ge=1)

    # ================================
    # Summary Configuration
    # ================================
    SUMMARY_CHUNK_SIZE_CHARS: int = 3000
    SUMMARY_TEMPERATURE: float = 0.3
    SUMMARY_CHUNK_MAX_TOKENS: int = 300
    SUMMARY_FINAL_MAX_TOKENS: int = 400
    SUMMARY_DETAILED_MAX_TOKENS: int = 800
    TAG_MAX_TOKENS: int = 100
    TAG_COUNT_TARGET: int = Field(10, ge=4, le=10)
    GENERATE_DETAILED_EAGERLY: bool = False

    # ================================
    # Transcript Provider
    # ================================
    TRANSCRIPT_PROVIDER: Literal["rapidapi", "youtube"] = "rapidapi"
    TRANSCRIPT_API_URL: str = "https://youtube-transcript3.p.rapidapi.com"
    TRANSCRIPT_API_HOST: str = "youtube-transcript3.p.rapidapi.com"
    TRANSCRIPT_API_KEY: Optional[str] = None
    TRANSCRIPT_CACHE_TTL_SECONDS: int = 7 * 24 * 3600
    TRANSCRIPT_CACHE_MAX_ENTRIES: int = Field(256, ge=1)  # in-memory backend only
    YOUTUBE_PREFERRED_TRANSCRIPT_LANGUAGES: str = "en,en-US,en-GB"

    @field_validator("YOUTUBE_PREFERRED_TRANSCRIPT_LANGUAGES")
    @classmethod
    def parse_transcript_languages(cls, v: str) -> List[str]:
        """Parse comma-separated languages into list."""
        return [lang.strip() for lang in v.split(",")]

    # ================================
    # YouTube API (video metadata)
    # ================================
    YOUTUBE_API_KEY: Optional[str] = None
    YOUTUBE_OEMBED_URL: str = "https://www.youtube.com/oembed"

    # ================================
    # Retry / Timeouts for external calls
    # ================================
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 10.0
    RETRY_BACKOFF_FACTOR: float = 2.0
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 30.0

    # ================================
    # Celery Configuration
    # ================================
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    # Celery accept content as comma-separated string, we'll parse it
    CELERY_ACCEPT_CONTENT: str = "json"
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True

    @property
    def celery_accept_content_list(self) -> List[str]:
        """Parse CELERY_ACCEPT_CONTENT into a list."""
        return [item.strip() for item in self.CELERY_ACCEPT_CONTENT.split(",")]

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"

    @property
    def uses_postgres(self) -> bool:
        """Whether DATABASE_URL points at PostgreSQL (vs. SQLite in tests)."""
        return self.DATABASE_URL.startswith("postgresql")


# Global settings instance
settings = Settings()
