"""Application configuration using Pydantic settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Assistant backend (edge function behind the platform gateway)
    api_url: str = Field(
        ..., alias="ASSISTANT_API_URL",
        description="Base URL of the backend platform (e.g. https://project.example.co).",
    )
    api_key: str = Field(
        ..., alias="ASSISTANT_API_KEY",
        description="Publishable platform API key, sent as the `apikey` header on every request.",
    )
    stream_path: str = Field(
        "/functions/v1/ai-assistant-stream", alias="ASSISTANT_STREAM_PATH",
        description="Path of the streaming assistant endpoint, relative to ASSISTANT_API_URL.",
    )
    timeout: float = Field(
        60.0, alias="ASSISTANT_TIMEOUT",
        description="HTTP timeout in seconds for assistant and auth calls. Applies per read, not to the whole stream.",
    )
    max_pending_chars: int = Field(
        1_048_576, alias="STREAM_MAX_PENDING_CHARS",
        description="Max characters buffered for one unterminated or unparseable stream line before the call fails.",
    )

    # Session credentials
    access_token: str = Field(
        "", alias="ASSISTANT_ACCESS_TOKEN",
        description="Access token of an existing login session. Empty = not authenticated.",
    )
    refresh_token: str = Field(
        "", alias="ASSISTANT_REFRESH_TOKEN",
        description="Refresh token used to renew the session after a 401.",
    )

    # Personas
    personas_config_path: str = Field(
        "config/personas.yaml", alias="PERSONAS_CONFIG_PATH",
        description="Path to the YAML persona catalogue. Missing file = built-in default persona only.",
    )
    persona_id: str = Field(
        "", alias="ASSISTANT_PERSONA_ID",
        description="Persona to chat with. Empty = the catalogue default.",
    )

    # Conversation memory
    memory_ttl: int = Field(
        3600, alias="MEMORY_TTL",
        description="TTL in seconds for conversation sessions. Sessions expire after this period of inactivity.",
    )
    memory_maxsize: int = Field(
        100, alias="MEMORY_MAXSIZE",
        description="Max number of conversation sessions held in memory. LRU eviction when exceeded.",
    )
    memory_max_messages: int = Field(
        20, alias="MEMORY_MAX_MESSAGES",
        description="Max messages kept per session (sliding window). Set to 0 for unlimited.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )

    @property
    def stream_url(self) -> str:
        """Full URL of the streaming assistant endpoint."""
        return f"{self.api_url.rstrip('/')}/{self.stream_path.lstrip('/')}"


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
