# backend/kbpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kbpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kbpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar used for order numbers and daily/monthly reports
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # Absolute lifetime of a login token
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Upper bound for applying ledger adjustments after a sale write;
    # exceeding it rolls the sale back.
    SALE_RECONCILE_TIMEOUT_SECONDS = float(os.environ.get("SALE_RECONCILE_TIMEOUT_SECONDS", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    # Login lockout: this many failures within the window lock the email
    LOGIN_MAX_FAILED_ATTEMPTS = int(os.environ.get("LOGIN_MAX_FAILED_ATTEMPTS", "10"))
    LOGIN_LOCKOUT_WINDOW_MINUTES = int(os.environ.get("LOGIN_LOCKOUT_WINDOW_MINUTES", "15"))
    LOGIN_LOCKOUT_MINUTES = int(os.environ.get("LOGIN_LOCKOUT_MINUTES", "15"))
