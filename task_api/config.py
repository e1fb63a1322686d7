"""Configuration settings using Pydantic BaseSettings."""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(default="Task Management API", description="Application display name")
    app_host: str = Field(default="0.0.0.0", description="FastAPI host")
    app_port: int = Field(default=3040, description="FastAPI port")
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: str = Field(default="production", description="Deployment environment name")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for rotating log files")
    log_to_file: bool = Field(default=True, description="Write app.log and error.log under log_dir")

    # Storage Configuration
    storage_backend: Literal["memory", "sqlite", "database"] = Field(
        default="sqlite", description="Task store implementation"
    )
    sqlite_path: Path = Field(default=Path("data/tasks.db"), description="SQLite database file")
    database_url: str = Field(
        default="mysql+aiomysql://root:@localhost:3306/task_management",
        description="SQLAlchemy async URL for the relational backend",
    )

    # Authentication Configuration
    jwt_secret: str = Field(default="change-me-to-a-long-random-jwt-secret", description="HMAC secret for issued tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expiry_hours: int = Field(default=24, ge=1, description="Token validity window in hours")
    bcrypt_rounds: int = Field(default=10, ge=4, le=31, description="bcrypt work factor")
    require_auth_for_tasks: bool = Field(default=False, description="Protect /api/tasks with bearer auth")
    seed_demo_users: bool = Field(default=False, description="Register admin and demo users at startup")
    seed_sample_tasks: bool = Field(default=False, description="Insert sample tasks into an empty store")

    # Rate Limiting Configuration
    rate_limit_enabled: bool = Field(default=True, description="Enable per-client rate limiting")
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1, description="Rate limit window length")
    rate_limit_max_requests: int = Field(default=100, ge=1, description="Requests per window per client")
    auth_rate_limit_max_requests: int = Field(
        default=5, ge=1, description="Login/register attempts per window per client"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Whether internal error details may be returned to clients."""
        return self.environment.lower() == "development"

    @property
    def database_target(self) -> Optional[str]:
        """Human-readable location of the configured task store."""
        if self.storage_backend == "sqlite":
            return str(self.sqlite_path)
        if self.storage_backend == "database":
            # Hide credentials embedded in the URL
            return self.database_url.rsplit("@", 1)[-1]
        return None


# Global settings instance
settings = Settings()
