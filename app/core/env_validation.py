"""
Environment variable validation and security checks.

This module validates that all required environment variables are properly
configured before the application starts. Missing optional integrations
(YouTube Data API, RapidAPI key) only produce warnings.
"""

import sys
from typing import List, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_MARKERS = ("change", "your-", "example")


def _looks_like_placeholder(value: str) -> bool:
    lowered = value.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def validate_secret_key(key_name: str, key_value: Optional[str], min_length: int = 32) -> List[str]:
    """
    Validate that a secret key meets security requirements.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not key_value:
        errors.append(f"{key_name} is not set")
        return errors

    if len(key_value) < min_length:
        errors.append(
            f"{key_name} is too short (must be at least {min_length} characters)"
        )

    if settings.is_production and _looks_like_placeholder(key_value):
        errors.append(
            f"{key_name} appears to be a placeholder value - update with a real secret key"
        )

    return errors


def validate_database_url() -> List[str]:
    """
    Validate database URL configuration.

    PostgreSQL must use the asyncpg driver; SQLite (aiosqlite) is accepted
    outside production for local runs and tests.
    """
    errors = []

    url = settings.DATABASE_URL
    if not url:
        errors.append("DATABASE_URL is not set")
        return errors

    if url.startswith("postgresql") and not url.startswith("postgresql+asyncpg://"):
        errors.append(
            "DATABASE_URL must use asyncpg driver (format: postgresql+asyncpg://...)"
        )
    elif url.startswith("sqlite"):
        if settings.is_production:
            errors.append("DATABASE_URL must point at PostgreSQL in production")
        elif not url.startswith("sqlite+aiosqlite://"):
            errors.append("SQLite DATABASE_URL must use aiosqlite (sqlite+aiosqlite://...)")
    elif not url.startswith("postgresql"):
        errors.append("DATABASE_URL must be a PostgreSQL or SQLite URL")

    return errors


def validate_redis_url() -> List[str]:
    """Validate Redis URL configuration."""
    errors = []

    if not settings.REDIS_URL:
        errors.append("REDIS_URL is not set")
        return errors

    if not settings.REDIS_URL.startswith(("redis://", "rediss://")):
        errors.append(
            "REDIS_URL must start with redis:// (format: redis://host:port/db)"
        )

    return errors


def validate_llm_provider() -> List[str]:
    """
    The selected language model provider needs its API key.

    Missing keys are errors in production and warnings elsewhere.
    """
    errors = []

    if settings.LLM_PROVIDER == "anthropic":
        key_name, key_value = "ANTHROPIC_API_KEY", settings.ANTHROPIC_API_KEY
    else:
        key_name, key_value = "OPENAI_API_KEY", settings.OPENAI_API_KEY

    if not key_value:
        message = f"{key_name} is not set - summaries cannot be generated with LLM_PROVIDER={settings.LLM_PROVIDER}"
        if settings.is_production:
            errors.append(message)
        else:
            logger.warning("environment_validation_warning", message=message)
    elif _looks_like_placeholder(key_value):
        errors.append(f"{key_name} appears to be a placeholder - update with real API key")

    return errors


def validate_optional_integrations() -> None:
    """Log warnings for integrations that degrade gracefully."""
    if settings.TRANSCRIPT_PROVIDER == "rapidapi" and not settings.TRANSCRIPT_API_KEY:
        logger.warning(
            "environment_validation_warning",
            message="TRANSCRIPT_API_KEY not set - RapidAPI transcript requests will be rejected",
        )

    if not settings.YOUTUBE_API_KEY:
        logger.warning(
            "environment_validation_warning",
            message="YOUTUBE_API_KEY not set - video metadata falls back to oEmbed",
        )


def validate_production_settings() -> List[str]:
    """Validate production-specific settings."""
    errors = []

    if not settings.is_production:
        return errors

    if settings.DEBUG:
        errors.append("DEBUG must be false in production")

    if "localhost" in ",".join(settings.ALLOWED_ORIGINS):
        logger.warning(
            "localhost_in_allowed_origins",
            message="ALLOWED_ORIGINS includes localhost in production - may be insecure"
        )

    if settings.LOG_FORMAT != "json":
        logger.warning(
            "log_format_not_json",
            message="LOG_FORMAT should be 'json' in production for better log aggregation"
        )

    if settings.DB_CREATE_TABLES:
        logger.warning(
            "create_tables_ignored",
            message="DB_CREATE_TABLES is ignored in production - run alembic upgrade head"
        )

    return errors


def validate_environment() -> Tuple[bool, List[str]]:
    """
    Validate all environment variables.

    Returns:
        (is_valid, list_of_errors)
    """
    all_errors = []

    logger.info(
        "validating_environment",
        app_env=settings.APP_ENV,
        app_name=settings.APP_NAME
    )

    all_errors.extend(validate_secret_key("JWT_SECRET_KEY", settings.JWT_SECRET_KEY))
    all_errors.extend(validate_database_url())
    all_errors.extend(validate_redis_url())
    all_errors.extend(validate_llm_provider())
    all_errors.extend(validate_production_settings())
    validate_optional_integrations()

    if all_errors:
        logger.error(
            "environment_validation_failed",
            errors=all_errors,
            error_count=len(all_errors)
        )
        return False, all_errors

    logger.info(
        "environment_validation_successful",
        app_env=settings.APP_ENV,
        features_enabled={
            "llm_provider": settings.LLM_PROVIDER,
            "transcript_provider": settings.TRANSCRIPT_PROVIDER,
            "youtube_data_api": bool(settings.YOUTUBE_API_KEY),
            "redis_cache": settings.REDIS_CACHE_ENABLED,
        }
    )
    return True, []


def validate_or_exit():
    """
    Validate environment and exit if validation fails.

    This should be called during application startup.
    """
    is_valid, errors = validate_environment()

    if not is_valid:
        logger.critical(
            "startup_aborted_invalid_environment",
            errors=errors
        )
        print("\nENVIRONMENT VALIDATION FAILED\n")
        print("The following configuration errors were found:\n")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")
        print("\nPlease fix these errors and restart the application.")
        print("See env_template for configuration reference.\n")
        sys.exit(1)

    logger.info("environment_validation_passed")
