"""
Application configuration using Pydantic Settings.

Values come from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the marketplace API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Freelance Hub"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern="^(development|staging|production)$")
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])

    # Firebase
    firebase_credentials_path: Optional[str] = Field(
        default=None,
        description="Path to a service-account key JSON; application default credentials are used when unset",
    )
    firebase_project_id: Optional[str] = None
    firebase_config_path: Optional[str] = Field(
        default=None,
        description="Client-side Firebase.json; only its projectId is read",
    )

    # Collections
    users_collection: str = "users"
    projects_collection: str = "projects"
    notifications_collection: str = "notifications"

    # Marketplace rules
    auto_reject_sibling_applications: bool = Field(
        default=False,
        description="Reject the other pending applications of a project when one is accepted",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
