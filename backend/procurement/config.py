# backend/procurement/config.py
from __future__ import annotations
import os


BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/procurement.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///procurement.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Generated files: DATA_ROOT/<org_id>/<case_id>/{work,documents}
    DATA_ROOT = os.environ.get("DATA_ROOT", "/data")

    # Pack registry: TEMPLATES_DIR/<pack_id>/pack.json + spreadsheet template
    TEMPLATES_DIR = os.environ.get("TEMPLATES_DIR", os.path.join(BACKEND_DIR, "templates"))

    # External spreadsheet -> PDF renderer
    CONVERTER_URL = os.environ.get("CONVERTER_URL", "http://converter:5000")
    CONVERTER_TIMEOUT_SECONDS = float(os.environ.get("CONVERTER_TIMEOUT_SECONDS", "120"))
