"""Application configuration and constants for the Daily Tracker backend."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing at the point of use."""


# Directories
BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
DATA_DIR: Final[Path] = BASE_DIR / "data"

# Database configuration
DEFAULT_DATABASE_URL = f"sqlite:///{(DATA_DIR / 'dailytracker.db').as_posix()}"
DATABASE_URL: Final[str] = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL

# Gemini / AI configuration
MODEL_NAME: Final[str] = os.getenv("MODEL_NAME", "gemini-2.5-flash")
ALT_MODEL_NAME: Final[str] = os.getenv("ALT_MODEL_NAME", "gemini-2.5-flash-lite")
GEMINI_API_KEY: Final[str] = os.getenv("GEMINI_API_KEY", "")

# Hosted auth service (bearer tokens are verified against it)
AUTH_SERVICE_URL: Final[str] = os.getenv("AUTH_SERVICE_URL", "").rstrip("/")
AUTH_SERVICE_KEY: Final[str] = os.getenv("AUTH_SERVICE_KEY", "")
AUTH_TIMEOUT_SECONDS: Final[float] = float(os.getenv("AUTH_TIMEOUT_SECONDS", 5))

# Streak and content horizons
STREAK_LOOKBACK_DAYS: Final[int] = int(os.getenv("STREAK_LOOKBACK_DAYS", 365))
INTENTION_HORIZON_DAYS: Final[int] = int(os.getenv("INTENTION_HORIZON_DAYS", 3))

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()


def ensure_data_dir() -> None:
    """Create the local data directory used by the default SQLite database."""

    DATA_DIR.mkdir(parents=True, exist_ok=True)
