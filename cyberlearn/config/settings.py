"""Engine settings using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="cyberlearn", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Redis
    redis_enabled: bool = Field(
        default=True, description="Use Redis for per-user profile locks"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="cyberlearn", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=10.0, description="Request timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )

    # Grading
    short_answer_policy: Literal["exact_match", "manual"] = Field(
        default="exact_match",
        description="Short answers: compare with the reference answer, or wait for an instructor",
    )
    strict_option_validation: bool = Field(
        default=True,
        description="Reject answers whose option id does not belong to the question",
    )
    grading_timeout_seconds: float = Field(
        default=5.0, description="Max time allowed to grade one submission"
    )

    # Orchestration
    require_enrollment: bool = Field(
        default=False,
        description="Reject quiz submissions from learners not enrolled in the path",
    )
    concurrency_max_retries: int = Field(
        default=5, description="Retries after an optimistic concurrency conflict"
    )
    storage_max_retries: int = Field(
        default=3, description="Retries for idempotent steps after a storage failure"
    )
    storage_retry_backoff_seconds: float = Field(
        default=0.05, description="Base backoff between storage retries"
    )

    # Gamification
    points_per_lesson: int = Field(
        default=10, description="Points awarded for each completed lesson"
    )
    quiz_points_multiplier: Decimal = Field(
        default=Decimal(1),
        description="Points per quiz pass = round(percentage * multiplier)",
    )
    count_every_quiz_pass: bool = Field(
        default=True,
        description="Count every passing attempt (True) or only the first pass per quiz",
    )
    streak_timezone: str = Field(
        default="UTC", description="Timezone used to bucket activity into days"
    )
    profile_lock_timeout_seconds: float = Field(
        default=10.0, description="Max time to wait for a learner's profile lock"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
