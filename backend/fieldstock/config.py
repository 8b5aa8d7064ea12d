# backend/fieldstock/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fieldstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///fieldstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Negative adjustments / write-offs that overshoot available stock are
    # clamped to what is available instead of failing.
    INVENTORY_CLAMP_CORRECTIONS_TO_ZERO = _env_flag("INVENTORY_CLAMP_CORRECTIONS_TO_ZERO", False)

    # Triggered alert check after every ledger append
    INVENTORY_ALERTS_ON_LEDGER = _env_flag("INVENTORY_ALERTS_ON_LEDGER", True)

    INVENTORY_EXPIRY_HORIZON_DAYS = int(os.environ.get("INVENTORY_EXPIRY_HORIZON_DAYS", "30"))
    INVENTORY_BATCH_SIZE = int(os.environ.get("INVENTORY_BATCH_SIZE", "200"))
    INVENTORY_MAX_PAGE_SIZE = int(os.environ.get("INVENTORY_MAX_PAGE_SIZE", "500"))
