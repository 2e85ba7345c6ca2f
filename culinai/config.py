"""Application configuration using pydantic-settings."""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    gemini_api_key: str = ""

    # Logging
    log_level: str = "INFO"

    # Gemini Settings
    gemini_models: str = "gemini-2.5-flash,gemini-2.5-flash-lite,gemini-2.0-flash"  # tried in order
    gemini_image_model: str = "gemini-2.5-flash-image"
    gemini_temperature: float = 0.4
    gemini_timeout: float = 45.0  # seconds, per candidate model

    # Images
    max_scan_images: int = 5
    max_user_images: int = 5
    max_image_bytes: int = 10 * 1024 * 1024  # 10MB
    vision_max_dim: int = 1400

    # Illustrative image lookup
    image_lookup_enabled: bool = True
    image_lookup_url: str = "https://www.themealdb.com/api/json/v1/1/search.php"
    image_lookup_timeout: float = 5.0  # seconds

    # Local state
    state_file: str = "culinai_state.json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def gemini_models_list(self) -> List[str]:
        """Get ordered list of candidate models."""
        return [model.strip() for model in self.gemini_models.split(",") if model.strip()]


# Global settings instance
settings = Settings()
