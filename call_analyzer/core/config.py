"""
Configuration module for Sales Call Analyzer.
Manages environment variables and application settings.
"""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    app_name: str = "Sales Call Analyzer (TH)"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)

    # Groq AI Configuration (checked per request, not at startup)
    groq_api_key: str = Field(default="")
    groq_model: str = Field(default="llama-3.3-70b-versatile")
    groq_transcription_model: str = Field(default="whisper-large-v3")
    groq_temperature: float = 0.2
    groq_max_tokens: int = 4096
    transcription_language: str = Field(default="th")

    # Upload limits
    max_audio_bytes: int = Field(default=25 * 1024 * 1024)

    # Google OAuth / Sheets Configuration
    google_api_key: str = Field(default="")
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(default="http://localhost:8000/auth/google/callback")
    google_scopes: str = "openid email profile https://www.googleapis.com/auth/spreadsheets"
    google_sheets_api_url: str = "https://sheets.googleapis.com"
    product_sheet_name: str = Field(default="ข้อมูลสินค้า")
    customer_sheet_name: str = Field(default="ข้อมูลลูกค้า")
    results_sheet_name: str = Field(default="ผลการวิเคราะห์")
    http_timeout_seconds: float = 30.0

    # MongoDB Configuration (optional - remembers sheet id and analysis history)
    mongo_url: Optional[str] = Field(default=None)
    mongo_db_name: str = Field(default="sales_call_analyzer")
    mongo_preferences_collection: str = "preferences"
    mongo_analyses_collection: str = "analyses"

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
