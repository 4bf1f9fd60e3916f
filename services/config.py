"""
Shared services: configuration management (pydantic-settings, python-dotenv)
Environment variable loading for the calendar MCP server
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BACKEND_MEMORY = "memory"
BACKEND_GOOGLE = "google"

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", validation_alias="MCP_SERVER_HOST")
    server_port: int = Field(default=3000, validation_alias="MCP_SERVER_PORT")
    mcp_protocol_version: str = Field(default="2024-11-05", validation_alias="MCP_PROTOCOL_VERSION")
    server_name: str = Field(default="calendar-server", validation_alias="MCP_SERVER_NAME")
    server_version: str = Field(default="1.0.0", validation_alias="MCP_SERVER_VERSION")
    server_description: str = Field(
        default="Calendar management server with MCP support",
        validation_alias="MCP_SERVER_DESCRIPTION"
    )

    # Event store backend: "memory" or "google"
    calendar_backend: str = Field(default=BACKEND_MEMORY, validation_alias="CALENDAR_BACKEND")

    # Security
    bearer_token: Optional[str] = Field(default=None, validation_alias="BEARER_TOKEN")

    # Google API Configuration
    google_client_id: Optional[str] = Field(default=None, validation_alias="GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = Field(default=None, validation_alias="GOOGLE_CLIENT_SECRET")
    google_redirect_uri: Optional[str] = Field(default=None, validation_alias="GOOGLE_REDIRECT_URI")
    google_oauth_token_secret: Optional[str] = Field(default=None, validation_alias="GOOGLE_OAUTH_TOKEN_SECRET")
    google_default_time_zone: str = Field(default="UTC", validation_alias="GOOGLE_DEFAULT_TIME_ZONE")
    google_api_timeout: float = Field(default=30.0, validation_alias="GOOGLE_API_TIMEOUT")

    # Google Cloud Project (for Secret Manager)
    google_cloud_project: Optional[str] = Field(default=None, validation_alias="GOOGLE_CLOUD_PROJECT")

    # Worker Configuration
    max_workers: int = Field(default=5, validation_alias="MAX_WORKERS")

    # Observability
    otel_exporter_endpoint: Optional[str] = Field(default=None, validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT")
    enable_telemetry: bool = Field(default=False, validation_alias="ENABLE_TELEMETRY")
    audit_log_file: Optional[str] = Field(default=None, validation_alias="AUDIT_LOG_FILE")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True
    }

    @property
    def uses_google(self) -> bool:
        return self.calendar_backend.lower() == BACKEND_GOOGLE

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

def validate_settings(settings: Optional[Settings] = None) -> tuple[bool, list[str]]:
    """
    Validate critical settings and return validation status

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    settings = settings or get_settings()
    errors = []

    backend = settings.calendar_backend.lower()
    if backend not in (BACKEND_MEMORY, BACKEND_GOOGLE):
        errors.append(
            f"Invalid calendar backend: {settings.calendar_backend}. "
            f"Must be one of {[BACKEND_MEMORY, BACKEND_GOOGLE]}"
        )

    if backend == BACKEND_GOOGLE:
        if not (settings.google_client_id and settings.google_client_secret):
            errors.append(
                "Google backend selected but GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are not both set"
            )
        if not settings.google_redirect_uri:
            errors.append("Google backend selected but GOOGLE_REDIRECT_URI is not set")

    if settings.google_oauth_token_secret and not settings.google_cloud_project:
        errors.append("GOOGLE_OAUTH_TOKEN_SECRET set but GOOGLE_CLOUD_PROJECT missing")

    # Validate port range
    if not (1 <= settings.server_port <= 65535):
        errors.append(f"Invalid server port: {settings.server_port}")

    # Validate log level
    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        errors.append(f"Invalid log level: {settings.log_level}. Must be one of {valid_log_levels}")

    if settings.max_workers <= 0:
        errors.append("MAX_WORKERS must be positive")

    if settings.google_api_timeout <= 0:
        errors.append("GOOGLE_API_TIMEOUT must be positive")

    return len(errors) == 0, errors

def get_environment_info(settings: Optional[Settings] = None) -> dict:
    """Get information about the current environment"""
    settings = settings or get_settings()

    return {
        "server_port": settings.server_port,
        "mcp_protocol_version": settings.mcp_protocol_version,
        "calendar_backend": settings.calendar_backend,
        "log_level": settings.log_level,
        "telemetry_enabled": settings.enable_telemetry,
        "bearer_token_required": bool(settings.bearer_token),
        "has_oauth_config": bool(settings.google_client_id and settings.google_client_secret),
        "max_workers": settings.max_workers
    }
