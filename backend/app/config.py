"""
Application configuration using Pydantic settings.
"""
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings."""

    # Database
    DATABASE_URL: str = "sqlite:///./backlog_sync.db"

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Backlog Sync API"
    DEBUG: bool = False

    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Auth (tokens are issued by the external identity provider)
    AUTH_JWT_SECRET: str = "dev-identity-provider-secret"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # Credential encryption: base64 of 32 raw bytes. Unset means plaintext mode.
    APP_ENCRYPTION_KEY: Optional[str] = None

    # Tracker HTTP
    TRACKER_HTTP_TIMEOUT: float = 15.0
    TRACKER_USER_AGENT: str = "ThriveIQ/1.0"

    # Context indexing
    OPENAI_API_KEY: Optional[str] = None
    VECTOR_STORE_NAME_PREFIX: str = "project-"
    MAX_FILE_SIZE: int = 20 * 1024 * 1024  # 20MB

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("APP_ENCRYPTION_KEY", "OPENAI_API_KEY", mode="before")
    @classmethod
    def blank_as_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    class Config:
        extra = "ignore"
        env_file = ".env"
        case_sensitive = True


# Create global settings instance
settings = Settings()
