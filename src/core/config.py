"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FieldNotes application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        database_url: Async SQLAlchemy connection string for SQLite.
        uploads_dir: Directory where uploaded interview audio is stored.
        capture_sample_rate: Sample rate requested from the input device.
        capture_chunk_interval: Seconds of audio per captured chunk.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    cors_origins: list[str] = [
        "http://localhost:8501",  # Streamlit
        "http://localhost:3000",  # Dev frontend
    ]

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/fieldnotes.db"
    uploads_dir: str = "data/uploads"  # Interview audio storage directory
    uploads_url_prefix: str = "/uploads"  # Public URL prefix for stored audio

    # --- Audio capture (client side) ---
    capture_sample_rate: int = 16000
    capture_channels: int = 1
    capture_chunk_interval: float = 1.0  # Seconds of audio per chunk
    capture_device: str = ""  # Empty = system default input device
    tick_interval: float = 0.5  # Seconds between timer display refreshes

    # --- UI ---
    api_base_url: str = "http://localhost:8000"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
