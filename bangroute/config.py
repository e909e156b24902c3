import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'bangroute.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOCAL_STORE_PATH = os.environ.get(
        "LOCAL_STORE_PATH", str(BASE_DIR / "local-bangs.json")
    )
    SETTINGS_API_URL = os.environ.get("SETTINGS_API_URL", "http://localhost:8073")
    SYNC_TIMEOUT = float(os.environ.get("SYNC_TIMEOUT", "10"))
    TOKEN_TTL_SECONDS = int(os.environ.get("TOKEN_TTL_SECONDS", str(60 * 60 * 24 * 30)))
    SUGGEST_LIMIT = int(os.environ.get("SUGGEST_LIMIT", "20"))
    HOST = os.environ.get("BANGROUTE_HOST", "0.0.0.0")
    PORT = int(os.environ.get("BANGROUTE_PORT", "8073"))
    # httpx transport override for the sync client; None means real network.
    SETTINGS_HTTP_TRANSPORT = None


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOCAL_STORE_PATH = None
    SETTINGS_API_URL = "http://bangroute.test"
