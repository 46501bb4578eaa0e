# backend/koifarm/config.py
from __future__ import annotations
import os


def _csv(name: str, default: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in os.environ.get(name, default).split(",") if item.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file next to the process unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///koifarm.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Back-office frontends (Vite dev server and preview) allowed to call the API
    CORS_ORIGINS = _csv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    # Sale document numbers look like "SO-000123"
    SALE_DOCUMENT_PREFIX = os.environ.get("SALE_DOCUMENT_PREFIX", "SO")

    # Upper bound for GET /api/sales?limit=
    SALES_LIST_MAX_LIMIT = int(os.environ.get("SALES_LIST_MAX_LIMIT", "500"))
