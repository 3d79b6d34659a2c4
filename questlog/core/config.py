"""Configuration management for questlog."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="QUESTLOG_",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote store configuration
    remote_enabled: bool = Field(
        default=True,
        description="Feature flag: route to the remote store whenever a session is active",
    )
    remote_base_url: str = Field(default="http://127.0.0.1:3000", description="Base URL of the remote task API")
    api_timeout_seconds: float = Field(default=30.0, description="Timeout for remote API calls (in seconds)")
    poll_interval_seconds: float = Field(
        default=5.0, description="Interval between remote snapshot polls (in seconds)"
    )

    # Local store configuration
    local_store_path: str = Field(default="./questlog.sqlite3", description="SQLite file backing the local store")
    local_store_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Size ceiling for a single local record; larger writes are skipped",
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Reminder Configuration
    reminder_minutes: list[int] = Field(
        default_factory=lambda: [1440, 60, 15],
        description="Minutes before the due instant at which reminders fire",
    )

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set QUESTLOG_{field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # XP & Leveling
    XP_TASK_COMPLETE: int = 50
    XP_SUBTASK_COMPLETE: int = 10
    XP_PER_LEVEL: int = 100

    # Field limits
    TITLE_MAX_LENGTH: int = 500
    DESCRIPTION_MAX_LENGTH: int = 5000
    MAX_TAGS: int = 50
    MEMBER_NAME_MAX_LENGTH: int = 100

    # HTTP Status Codes
    HTTP_UNAUTHORIZED: int = 401
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404

    # Reminders
    REMINDER_HOUR: int = 9  # Due dates are reminded relative to 9am on the due day

    # Side effects
    DEAD_LETTER_QUEUE_MAXLEN: int = 100

    # Defaults
    DEFAULT_MEMBER_ID: str = "default-1"
    DEFAULT_MEMBER_NAME: str = "You"
    BACKUP_VERSION: str = "1.0"


settings = Settings()
constants = Constants()
