from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./channel_sync.db",
        alias="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # ==============================================
    # Channel Settings (Server-Side Only!)
    # ==============================================
    # Display name of the active channel, also used as the internal
    # reservation source for channel-originated bookings
    channel_name: str = Field(default="Beds24", alias="CHANNEL_NAME")

    # Base URL for the channel REST API
    channel_base_url: str = Field(
        default="https://api.beds24.com/v2",
        alias="CHANNEL_BASE_URL"
    )
    channel_api_key: str = Field(default="", alias="CHANNEL_API_KEY")
    channel_property_id: str = Field(default="", alias="CHANNEL_PROPERTY_ID")
    channel_timeout_seconds: int = Field(default=30, alias="CHANNEL_TIMEOUT_SECONDS")

    # Webhook secret for validating incoming webhooks
    webhook_secret: str = Field(default="", alias="BEDS24_WEBHOOK_SECRET")
    webhook_signature_header: str = Field(default="X-Beds24-Signature", alias="WEBHOOK_SIGNATURE_HEADER")
    webhook_max_payload_bytes: int = Field(default=256 * 1024, alias="WEBHOOK_MAX_PAYLOAD_BYTES")

    # Events left pending longer than this are candidates for reprocessing
    webhook_pending_grace_seconds: int = Field(default=300, alias="WEBHOOK_PENDING_GRACE_SECONDS")
    reprocess_pending_on_startup: bool = Field(default=True, alias="REPROCESS_PENDING_ON_STARTUP")

    # Placeholders carried over from the channel mapping, kept as knobs
    default_currency: str = Field(default="USD", alias="DEFAULT_CURRENCY")
    default_units_requested: int = Field(default=1, alias="DEFAULT_UNITS_REQUESTED")

    # Availability
    availability_max_days: int = Field(default=366, alias="AVAILABILITY_MAX_DAYS")
    sync_horizon_days: int = Field(default=365, alias="SYNC_HORIZON_DAYS")

    # Worker settings
    worker_poll_interval: int = Field(default=30, alias="WORKER_POLL_INTERVAL")  # seconds
    worker_batch_size: int = Field(default=50, alias="WORKER_BATCH_SIZE")

    @field_validator('default_units_requested')
    @classmethod
    def validate_default_units(cls, v: int) -> int:
        """A booking always holds at least one unit"""
        if v < 1:
            raise ValueError("DEFAULT_UNITS_REQUESTED must be at least 1")
        return v

    @field_validator('default_currency')
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3:
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter ISO code")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def channel_slug(self) -> str:
        """Lower-case channel name used in synthesized event ids"""
        return self.channel_name.strip().lower().replace(" ", "-")

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
