# backend/changeroom/config.py
from __future__ import annotations
import os


def _split_origins(raw: str) -> set[str]:
    return {origin.strip() for origin in raw.split(",") if origin.strip()}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/changeroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///changeroom.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Transferred baskets stay visible this long before the grouping row may be purged
    BASKET_TRANSFER_GRACE_SECONDS = int(os.environ.get("BASKET_TRANSFER_GRACE_SECONDS", "300"))

    CORS_ALLOWED_ORIGINS = _split_origins(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        )
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
