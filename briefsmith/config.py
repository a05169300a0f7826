"""
Briefsmith
Configuration classes for the Flask app factory.

Every setting is read from the environment at import time; ``APP_ENV``
selects the class:

    app.config.from_object(config[os.getenv("APP_ENV", "development")])

LLM settings:
    LLM_PRIMARY_PROVIDER / LLM_FALLBACK_PROVIDER   sarvam | gemini | local | none
    SARVAM_API_KEY, SARVAM_BASE_URL, SARVAM_MODEL
    GEMINI_API_KEY, GEMINI_MODEL
    LLM_REQUEST_TIMEOUT                             seconds per provider call
    REDIS_URL                                       response cache; memory:// for in-process
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _database_url(fallback=None):
    """DATABASE_URL with Heroku's postgres:// scheme rewritten for SQLAlchemy 2."""
    url = os.getenv("DATABASE_URL", "")
    if not url:
        return fallback
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    ENV_NAME = "base"
    DEBUG = False
    TESTING = False

    # Per-process random key unless provided; production requires one
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    LLM_CACHE_TTL_SECONDS = 3600

    LLM_PRIMARY_PROVIDER = os.getenv("LLM_PRIMARY_PROVIDER", "sarvam")
    LLM_FALLBACK_PROVIDER = os.getenv("LLM_FALLBACK_PROVIDER", "gemini")
    SARVAM_API_KEY = os.getenv("SARVAM_API_KEY", "")
    SARVAM_BASE_URL = os.getenv("SARVAM_BASE_URL", "https://api.sarvam.ai")
    SARVAM_MODEL = os.getenv("SARVAM_MODEL", "sarvam-m")
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-pro")
    LLM_REQUEST_TIMEOUT = int(os.getenv("LLM_REQUEST_TIMEOUT", "30"))

    # YAML prompt overrides; a missing directory means built-in prompts only
    PROMPTS_DIR = os.getenv("PROMPTS_DIR", os.path.join(basedir, "prompts"))

    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    ENV_NAME = "development"
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(basedir, 'instance', 'briefsmith_dev.db')}"
    )


class TestingConfig(Config):
    ENV_NAME = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REDIS_URL = "memory://"
    RATELIMIT_ENABLED = False
    # Tests inject providers explicitly; never pick up a developer's keys
    SARVAM_API_KEY = ""
    GEMINI_API_KEY = ""


class ProductionConfig(Config):
    ENV_NAME = "production"
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
    }

    def __init__(self):
        missing = [
            name for name, present in (
                ("DATABASE_URL", bool(self.SQLALCHEMY_DATABASE_URI)),
                ("SECRET_KEY", bool(os.getenv("SECRET_KEY"))),
            )
            if not present
        ]
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
