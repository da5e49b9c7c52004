"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """mediarelay application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "mediarelay"
    DEBUG: bool = False
    CORS_ORIGINS: str = "*"

    # --- HTTP ---
    HTTP_TIMEOUT: float = 60.0
    DOWNLOAD_TIMEOUT: float = 300.0

    # --- Storage ---
    STORAGE_BACKEND: str = "supabase"  # "supabase" or "local"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    MEDIA_VOLUME: str = "media_volume"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # --- Signed tokens (Kling) ---
    JWT_TTL_SECONDS: int = 1800
    JWT_SKEW_SECONDS: int = 5
    JWT_REFRESH_MARGIN: int = 300  # reissue once less than 5 min remain

    # --- Kling ---
    KLING_BASE_URL: str = "https://api.klingai.com"
    KLING_BUCKET: str = "kling-videos"
    KLING_POLL_INTERVAL: float = 10.0
    KLING_MAX_WAIT: float = 15 * 60

    # --- Sora (OpenAI) ---
    OPENAI_BASE_URL: str = "https://api.openai.com"
    SORA_BUCKET: str = "sora-videos"
    SORA_POLL_INTERVAL: float = 10.0
    SORA_MAX_WAIT: float = 12 * 60

    # --- Veo (Gemini) ---
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    VEO_BUCKET: str = "veo-videos"
    VEO_POLL_INTERVAL: float = 10.0
    VEO_MAX_WAIT: float = 10 * 60

    # --- HeyGen ---
    HEYGEN_BASE_URL: str = "https://api.heygen.com"
    HEYGEN_BUCKET: str = "heygen-videos"
    HEYGEN_POLL_INTERVAL: float = 10.0
    HEYGEN_MAX_WAIT: float = 15 * 60
    HEYGEN_FALLBACK_AVATAR_ID: str = "Angela-inTshirt-20220820"
    HEYGEN_FALLBACK_VOICE_ID: str = "1bd001e7e50f421d891986aad5158bc8"

    # --- AssemblyAI ---
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com"
    ASSEMBLYAI_BUCKET: str = "transcripts"
    ASSEMBLYAI_POLL_INTERVAL: float = 6.0
    ASSEMBLYAI_MAX_WAIT: float = 15 * 60

    SUPADATA_BASE_URL: str = "https://api.supadata.ai"
    SUPADATA_BUCKET: str = "transcripts"
    SUPADATA_POLL_INTERVAL: float = 8.0
    SUPADATA_MAX_WAIT: float = 15 * 60

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
