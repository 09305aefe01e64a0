"""
Configuration module for loading environment variables
"""

import os
from typing import Optional


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration"""

    # Storage selection: "memory" or "postgres"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "memory").lower()

    # Reverse geocoding (OpenStreetMap Nominatim)
    NOMINATIM_URL: str = os.getenv(
        "NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse"
    )
    HTTP_USER_AGENT: str = os.getenv("HTTP_USER_AGENT", "safe-route-navigator/1.0")
    GEOCODER_TIMEOUT_S: float = float(os.getenv("GEOCODER_TIMEOUT_S", "5"))

    # External incident feeds
    EXTERNAL_FEED_TIMEOUT_S: float = float(os.getenv("EXTERNAL_FEED_TIMEOUT_S", "5"))
    UK_POLICE_API_URL: str = os.getenv(
        "UK_POLICE_API_URL", "https://data.police.uk/api/crimes-street/all-crime"
    )
    ENABLE_UK_POLICE_FEED: bool = _flag("ENABLE_UK_POLICE_FEED", "true")
    # Synthetic incidents are demo data, never authoritative
    ENABLE_SYNTHETIC_INCIDENTS: bool = _flag("ENABLE_SYNTHETIC_INCIDENTS", "false")

    # News sources
    NEWS_API_KEY: Optional[str] = os.getenv("NEWS_API_KEY")
    GNEWS_API_KEY: Optional[str] = os.getenv("GNEWS_API_KEY")
    NEWS_TIMEOUT_S: float = float(os.getenv("NEWS_TIMEOUT_S", "10"))
    DANGER_ZONE_REFRESH_S: int = int(os.getenv("DANGER_ZONE_REFRESH_S", "1800"))

    # Live location sharing: "memory" or "redis"
    LIVE_LOCATION_BACKEND: str = os.getenv("LIVE_LOCATION_BACKEND", "memory").lower()
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Twilio Configuration
    TWILIO_ACCOUNT_SID: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER: Optional[str] = os.getenv("TWILIO_PHONE_NUMBER")
    EMERGENCY_PHONE: Optional[str] = os.getenv("EMERGENCY_PHONE")


config = Config()
