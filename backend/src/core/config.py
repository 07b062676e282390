"""
Application configuration using Pydantic Settings.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # Application
    APP_NAME: str = Field(default="Stockroom API", description="Application name")
    ENVIRONMENT: str = Field(default="development", description="Environment name")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Server
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=3000, description="Server port")

    # Database (PostgreSQL)
    DATABASE_URL: str = Field(..., description="PostgreSQL connection string")
    DB_POOL_SIZE: int = Field(default=10, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=0, description="Connections allowed beyond the pool size")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Seconds to wait for a free connection")
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=30000, description="Statement timeout (ms)")

    # Firebase
    FIREBASE_PROJECT_ID: Optional[str] = Field(default=None, description="Firebase project ID")
    FIREBASE_CLIENT_EMAIL: Optional[str] = Field(
        default=None, description="Service account client email"
    )
    FIREBASE_PRIVATE_KEY: Optional[str] = Field(
        default=None, description="Service account private key (PEM)"
    )
    FIREBASE_DATABASE_REGION: str = Field(
        default="us-central1", description="Realtime Database region"
    )
    FIREBASE_DATABASE_URL: Optional[str] = Field(
        default=None, description="Explicit Realtime Database URL (overrides region)"
    )

    # Activity stream
    PRODUCT_LOG_PATH: str = Field(default="product_logs", description="Realtime Database path")
    ACTIVITY_FEED_LIMIT: int = Field(default=50, description="Entries shown by the live feed")
    EVENT_QUEUE_MAX_SIZE: int = Field(default=1000, description="Pending audit events kept")
    EVENT_DRAIN_TIMEOUT: float = Field(
        default=5.0, description="Seconds spent flushing audit events on shutdown"
    )

    # Command line client
    API_URL: str = Field(default="http://localhost:3000", description="Base URL of the Stockroom API")
    API_TOKEN: Optional[str] = Field(default=None, description="Bearer token sent by the command line")
    API_TIMEOUT: float = Field(default=10.0, description="Seconds before an API request times out")

    # CORS
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origins (comma-separated)",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log format (json or text)")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v_upper

    @field_validator("FIREBASE_PRIVATE_KEY")
    @classmethod
    def unescape_private_key(cls, v: Optional[str]) -> Optional[str]:
        """Turn escaped newlines from .env files into real ones."""
        if v is None:
            return v
        return v.replace("\\n", "\n")

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins parsed from the comma-separated setting."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def firebase_configured(self) -> bool:
        """Whether service account credentials are available."""
        return bool(
            self.FIREBASE_PROJECT_ID and self.FIREBASE_CLIENT_EMAIL and self.FIREBASE_PRIVATE_KEY
        )

    @property
    def firebase_database_url(self) -> Optional[str]:
        """
        Realtime Database URL for the configured project.

        The default region uses the short firebaseio.com host, every other
        region is served from firebasedatabase.app.
        """
        if self.FIREBASE_DATABASE_URL:
            return self.FIREBASE_DATABASE_URL
        if not self.FIREBASE_PROJECT_ID:
            return None
        if self.FIREBASE_DATABASE_REGION == "us-central1":
            return f"https://{self.FIREBASE_PROJECT_ID}-default-rtdb.firebaseio.com"
        return (
            f"https://{self.FIREBASE_PROJECT_ID}-default-rtdb."
            f"{self.FIREBASE_DATABASE_REGION}.firebasedatabase.app"
        )


# Global settings instance
settings = Settings()
