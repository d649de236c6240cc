"""Configuration and settings for RelayChat.

Uses Pydantic Settings for fail-fast validation on startup.
All required environment variables are validated at import time.
"""

import logging
import sys
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("google.cloud.firestore_v1.watch").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Raises ValidationError on startup if required variables are missing.
    """

    model_config = SettingsConfigDict(
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys (required)
    anthropic_api_key: str = Field(..., description="Anthropic API key for Claude")

    # Firebase Configuration (required)
    # Can be either a JSON string, base64 JSON or a file path to the credentials JSON
    firebase_credentials: str = Field(
        ..., description="Firebase service account JSON string or path to JSON file"
    )
    firebase_database_url: str = Field(
        ..., description="Realtime Database URL used for presence and typing"
    )

    # Cloudinary Configuration (required for attachments)
    cloudinary_cloud_name: str = Field(..., description="Cloudinary cloud name")
    cloudinary_upload_preset: str = Field(
        ..., description="Unsigned Cloudinary upload preset"
    )

    # Application Settings
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")
    store_backend: Literal["firestore", "memory"] = Field(
        default="firestore",
        description="Document/presence store driver (memory = process-local)",
    )

    # Chat Settings
    message_window: int = Field(
        default=50, description="Number of most recent messages kept live per target"
    )
    max_upload_size_mb: int = Field(default=10, description="Max attachment size in MB")
    upload_timeout_seconds: float = Field(
        default=60.0, description="Timeout for upload and fetch calls in seconds"
    )

    # LLM Settings
    llm_model: str = Field(
        default="claude-sonnet-4-20250514", description="Claude model for the assistant"
    )
    llm_temperature: float = Field(
        default=0.7, description="LLM temperature for assistant replies"
    )
    llm_max_tokens: int = Field(default=2048, description="Max tokens for generation")

    @field_validator(
        "anthropic_api_key", "cloudinary_cloud_name", "cloudinary_upload_preset"
    )
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        """Ensure required secrets are not empty strings."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v.strip()

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max attachment size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# CORS Configuration
CORS_CONFIG: dict[str, Any] = {
    "allow_origins": [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    "allow_credentials": True,
    "allow_methods": ["GET", "POST", "DELETE", "OPTIONS"],
    "allow_headers": ["*"],
    "expose_headers": ["*"],
    "max_age": 600,
}

# FastAPI App Configuration
APP_CONFIG: dict[str, Any] = {
    "title": "RelayChat",
    "description": (
        "Realtime chat backend for direct, group and assistant conversations. "
        "Reconciles live store subscriptions into one session view."
    ),
    "version": "0.1.0",
    "docs_url": "/api/docs",
    "redoc_url": "/api/redoc",
    "openapi_url": "/api/openapi.json",
    "openapi_tags": [
        {
            "name": "Health",
            "description": "Health check and service status",
        },
        {
            "name": "Sessions",
            "description": "Open and close live chat sessions",
        },
        {
            "name": "Chat",
            "description": "Selection, messaging, forwarding and live view",
        },
    ],
}


def get_app_config() -> dict[str, Any]:
    """Get FastAPI application configuration."""
    return APP_CONFIG.copy()


def get_cors_config() -> dict[str, Any]:
    """Get CORS middleware configuration."""
    return CORS_CONFIG.copy()
