"""
Configuration module for the salon booking service.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Booking rules
    timezone: str = "America/Sao_Paulo"
    slot_step_minutes: int = 30
    min_lead_minutes: int = 30  # Same-day bookings must start at least this far ahead
    reminder_hours_before: int = 24

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production
    max_request_size_bytes: int = 1024 * 1024

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Public URL used in notification messages (e.g. https://app.example.com)
    public_app_url: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = [
            "supabase_url",
            "supabase_key",
        ]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Placeholder values copied from .env.example
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.slot_step_minutes <= 0:
            missing.append("slot_step_minutes")
        if self.min_lead_minutes < 0:
            missing.append("min_lead_minutes")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
