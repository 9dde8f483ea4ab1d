"""Configuration settings for the relief dispatch and routing system."""
import os
from typing import Dict, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class Config:
    # Routing oracle (OSRM)
    OSRM_BASE_URL: str = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
    OSRM_TIMEOUT_SECONDS: float = float(os.getenv("OSRM_TIMEOUT_SECONDS", "10"))

    # Hazard feed
    HAZARD_FEED_URL: Optional[str] = os.getenv("HAZARD_FEED_URL")
    HAZARD_FEED_TIMEOUT_SECONDS: float = float(os.getenv("HAZARD_FEED_TIMEOUT_SECONDS", "10"))

    # Notification webhook (logged only when unset)
    NOTIFICATION_WEBHOOK_URL: Optional[str] = os.getenv("NOTIFICATION_WEBHOOK_URL")
    NOTIFICATION_TIMEOUT_SECONDS: float = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5"))

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///dispatch.db")

    # Hazard rules
    FLOOD_BLOCKING_SEVERITY: int = 3  # floods strictly above this block routing
    BYPASS_PADDING_DEGREES: float = 0.003  # ~300m
    MAX_BYPASS_ATTEMPTS: int = 3

    # Live tracking
    SIGNIFICANT_MOVE_METERS: float = float(os.getenv("SIGNIFICANT_MOVE_METERS", "30"))
    ROUTE_WORKERS: int = int(os.getenv("ROUTE_WORKERS", "4"))
    # Per tracked agent, one worker per leg
    TRACKING_ROUTE_WORKERS: int = int(os.getenv("TRACKING_ROUTE_WORKERS", "2"))
    HAZARD_POLL_SECONDS: float = float(os.getenv("HAZARD_POLL_SECONDS", "30"))

    # Priority ranking
    PRIORITY_WEIGHTS: Dict[str, float] = {
        "wait": 0.5,
        "perish": 0.3,
        "impact": 0.2,
    }
    DEFAULT_DEADLINE_HOURS: float = 24.0
    IMPACT_SENTINEL: float = 1e6  # km per serving, worst case

    # Nearest-available search
    DEFAULT_SEARCH_RADIUS_METERS: float = 50000
    DEFAULT_SEARCH_LIMIT: int = 50

    # API settings
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8080"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
