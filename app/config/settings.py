"""
Application settings and configuration management.

This module centralizes all application configuration using Pydantic settings
for type validation and environment variable handling.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Main application settings class.

    Uses Pydantic BaseSettings to automatically load configuration from:
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    # Database Configuration
    database_url: str = "sqlite:///./group_chat.db"

    # Redis Configuration (realtime push channels)
    redis_url: str = "redis://localhost:6379/0"
    push_channel_prefix: str = "chat:user:"

    # Celery Configuration
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # Application Configuration
    debug: bool = True
    log_level: str = "INFO"

    # API Configuration
    api_v1_str: str = "/api/v1"
    project_name: str = "Group Chat Service"

    # Header populated by the upstream token verification middleware
    user_id_header: str = "X-User-Id"

    # Group policy
    members_can_invite: bool = False
    visit_card_max_length: int = 20

    class Config:
        """Pydantic configuration for settings loading."""
        env_file = ".env"
        case_sensitive = False


# Global settings instance
# This will be imported throughout the application for configuration access
settings = Settings()
