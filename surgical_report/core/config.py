"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Surgical report service settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        transcription_provider: Dictation STT backend ("webhook" or "local").
        validation_webhook_url: Endpoint that validates the description step.
        suggestion_provider: Where procedure suggestions come from
            ("webhook" or "llm").
        validation_lock_severity: Lowest global severity that locks the
            "next" control behind a countdown.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Transcription (dictation by audio chunks) ---
    # "webhook" posts base64 audio to an external service, "local" uses faster-whisper
    transcription_provider: str = "webhook"
    transcription_webhook_url: str = "http://localhost:5678/webhook/transcribe"
    transcription_timeout_seconds: float = 60.0
    whisper_model: str = "base"  # Model size: tiny, base, small, medium, large-v3
    whisper_default_language: str = "es"  # ISO 639-1 code; empty = auto-detect

    # --- Dictation ---
    dictation_language: str = "es-ES"  # BCP-47 tag sent to the browser recognizer
    dictation_timeslice_ms: int = 2000  # Recorder timeslice requested from clients
    recognition_auto_restart: bool = True

    # --- Validation webhook ---
    validation_webhook_url: str = "http://localhost:5678/webhook/validar-descripcion"
    webhook_timeout_seconds: float = 120.0
    validation_lock_seconds: int = 5
    validation_lock_severity: str = "alta"  # "alta" = severity-conditional, "baja" = always lock

    # --- Procedure suggestions ---
    suggestion_provider: str = "webhook"  # "webhook" or "llm"
    suggestion_webhook_url: str = "http://localhost:5678/webhook/sugerir-procedimientos"

    # LLM backend used when suggestion_provider="llm"
    llm_provider: str = "ollama"  # "claude" or "ollama"
    claude_api_key: str = ""  # Required when llm_provider="claude"
    claude_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"

    # --- Form limits ---
    field_max_length: int = 5000  # Max characters per description textarea

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    cors_origins: list[str] = [
        "http://localhost:5173",  # Vite dev frontend
        "http://localhost:3000",
    ]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
