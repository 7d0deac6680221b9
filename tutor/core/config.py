"""Configuration management for the legal tutor service."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (identity provider + conversation store)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_ANON_KEY: str = Field(..., description="Supabase public (anon) key")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None,
        description="Optional service role key; when unset, writes run under the user's session",
    )

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    TUTOR_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Chat completion
    CHAT_MODEL: str = Field(default="gpt-4o", description="Model for tutor replies")
    CHAT_TEMPERATURE: float = Field(
        default=0.4, description="Low temperature keeps legal answers precise"
    )
    CHAT_TIMEOUT_SECONDS: float = Field(default=60.0, description="Model request timeout")
    MAX_HISTORY_MESSAGES: int = Field(
        default=20, description="Prior messages forwarded to the model per turn"
    )
    MAX_MESSAGE_CHARS: int = Field(default=8000, description="Max characters per user message")
    PERSIST_RETRIES: int = Field(
        default=2, description="Extra attempts for the assistant-turn write"
    )
    PERSIST_BACKOFF_SECONDS: float = Field(
        default=0.5, description="Base delay between assistant-turn write attempts"
    )

    # Rate limiting (per user)
    CHAT_REQUESTS_PER_MINUTE: int = Field(default=10, description="Sustained chat rate")
    CHAT_BURST_SIZE: int = Field(default=15, description="Max chat burst")

    # Speech-to-text
    TRANSCRIBE_MODEL: str = Field(
        default="gpt-4o-mini-transcribe", description="Model for voice input"
    )
    TRANSCRIBE_LANGUAGE: str = Field(default="es", description="Forced transcription language")
    MAX_AUDIO_BYTES: int = Field(default=25_000_000, description="Max audio upload size in bytes")

    # Vertex AI Search (optional; missing values disable context retrieval)
    VERTEX_PROJECT_ID: str | None = Field(default=None, description="GCP project id")
    VERTEX_LOCATION: str | None = Field(default=None, description="Search location, e.g. global")
    VERTEX_COLLECTION: str | None = Field(default=None, description="Search collection")
    VERTEX_ENGINE_ID: str | None = Field(default=None, description="Data store id")
    VERTEX_SERVING_CONFIG: str | None = Field(default=None, description="Serving config id")
    GOOGLE_APPLICATION_CREDENTIALS_JSON: str | None = Field(
        default=None, description="Inline service account JSON"
    )
    GOOGLE_APPLICATION_CREDENTIALS: str | None = Field(
        default=None, description="Path to a service account key file"
    )
    SEARCH_PAGE_SIZE: int = Field(default=5, description="Results requested per search")
    SEARCH_MAX_RESULTS: int = Field(default=3, description="Snippets kept in the context block")
    SEARCH_TIMEOUT_SECONDS: float = Field(default=10.0, description="Search request timeout")

    @property
    def search_configured(self) -> bool:
        """True when every Vertex AI Search identifier is present."""
        return all(
            [
                self.VERTEX_PROJECT_ID,
                self.VERTEX_LOCATION,
                self.VERTEX_COLLECTION,
                self.VERTEX_ENGINE_ID,
                self.VERTEX_SERVING_CONFIG,
            ]
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
