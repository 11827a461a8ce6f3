"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="RODOVAR_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "RODOVAR Tracking API"
    api_prefix: str = "/api"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    data_root: Path = Field(default=Path("data"), description="Root directory for the local cache.")

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase key used for shipment and driver tables.",
    )
    shipments_table: str = "shipments"
    drivers_table: str = "drivers"

    # Live tracking
    tracking_interval_seconds: float = Field(default=20.0, gt=0.0)
    viewer_poll_seconds: float = Field(default=5.0, gt=0.0)
    io_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Upper bound for a single position fix or store call inside a tick.",
    )
    connectivity_probe_seconds: float = Field(default=15.0, gt=0.0)
    position_max_age_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Relayed device fixes older than this are treated as a timeout.",
    )
    proximity_threshold_km: float = Field(default=2.0, ge=0.0)
    tracking_compare_and_swap: bool = Field(
        default=False,
        description="Guard tick writes with the fetched record version.",
    )

    # Geocoding (Nominatim compatible)
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "rodovar-tracking/1.0"
    geocode_country: str = "Brazil"
    geocode_timeout_seconds: float = Field(default=10.0, gt=0.0)
    geocode_max_retries: int = Field(default=2, ge=0)
    geocode_backoff_seconds: float = Field(default=0.5, ge=0.0)
    country_centroid: tuple[float, float] = Field(
        default=(-14.2350, -51.9253),
        description="Fallback (lat, lng) when a city cannot be geocoded.",
    )

    company_prefixes: tuple[str, ...] = Field(default=("RODOVAR", "AXD"))
    maintenance_warning_km: int = Field(default=500, ge=0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "company_prefixes", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("country_centroid", mode="before")
    @classmethod
    def _parse_point_from_env(cls, value: Any) -> tuple[float, float]:
        """Parse a "lat,lng" pair from environment variable (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        raise ValueError("country_centroid must be a (lat, lng) pair")


settings = Settings()
