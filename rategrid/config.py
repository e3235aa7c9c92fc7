from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ==============================================
    # Remote inventory service
    # ==============================================
    inventory_base_url: str = Field(
        default="http://localhost:3001",
        alias="INVENTORY_BASE_URL"
    )

    # HTTP timeout for inventory requests
    inventory_timeout_seconds: float = Field(default=20.0, alias="INVENTORY_TIMEOUT_SECONDS")

    # Retries apply to idempotent GET requests only
    inventory_max_retries: int = Field(default=3, alias="INVENTORY_MAX_RETRIES")
    inventory_retry_base_delay: float = Field(default=0.5, alias="INVENTORY_RETRY_BASE_DELAY")
    inventory_retry_max_delay: float = Field(default=8.0, alias="INVENTORY_RETRY_MAX_DELAY")

    # ==============================================
    # Grid interaction
    # ==============================================
    # Pointer travel (px) before a press becomes a drag
    drag_threshold_px: float = Field(default=5.0, alias="DRAG_THRESHOLD_PX")

    # Window after a release during which a synthetic click is ignored
    drag_click_suppress_ms: int = Field(default=100, alias="DRAG_CLICK_SUPPRESS_MS")

    # Initial visible window length (days)
    default_window_days: int = Field(default=30, alias="DEFAULT_WINDOW_DAYS")

    # ==============================================
    # Saving and sync
    # ==============================================
    # Units per bulk-update request (large saves are split)
    bulk_max_units_per_request: int = Field(default=50, alias="BULK_MAX_UNITS_PER_REQUEST")

    # Sync status polling (runs inside the FastAPI process)
    sync_poll_enabled: bool = Field(default=False, alias="SYNC_POLL_ENABLED")
    sync_poll_interval_seconds: float = Field(default=30.0, alias="SYNC_POLL_INTERVAL_SECONDS")
    sync_group_ids: str = Field(default="", alias="SYNC_GROUP_IDS")  # Comma-separated

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    @field_validator('drag_threshold_px')
    @classmethod
    def validate_drag_threshold(cls, v: float) -> float:
        if v < 0:
            raise ValueError("DRAG_THRESHOLD_PX cannot be negative")
        return v

    @field_validator('bulk_max_units_per_request')
    @classmethod
    def validate_bulk_max_units(cls, v: int) -> int:
        if v < 1:
            raise ValueError("BULK_MAX_UNITS_PER_REQUEST must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def sync_group_id_list(self) -> List[int]:
        """
        Parse unit groups to poll.
        Invalid entries are skipped.
        """
        groups = []
        for part in self.sync_group_ids.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                groups.append(int(part))
            except ValueError:
                continue
        return groups

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
