# backend/bookkeeper/config.py
from __future__ import annotations
import os


class Config:
    # Signs the session cookie that carries the in-progress sale draft
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bookkeeper.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Attempts per storage write before surfacing a StorageFailure
    STORAGE_RETRY_ATTEMPTS = int(os.environ.get("STORAGE_RETRY_ATTEMPTS", "3"))

    SALES_PER_PAGE = int(os.environ.get("SALES_PER_PAGE", "10"))

    SALE_DRAFT_SESSION_KEY = "current_sale"
