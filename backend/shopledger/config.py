# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shop identity and local day boundaries for reports
    SHOP_NAME = os.environ.get("SHOP_NAME", "My Shop")
    SHOP_TIMEZONE = os.environ.get("SHOP_TIMEZONE", "UTC")

    # Upper bound on waiting for another terminal editing the same bill
    LOCK_TIMEOUT_SECONDS = float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
