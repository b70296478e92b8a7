"""Settings, database session factory and logging setup."""

from app.core.config import get_settings, settings
from app.core.database import SessionLocal, build_engine, get_db
from app.core.logging_config import configure_logging

__all__ = ["SessionLocal", "build_engine", "configure_logging", "get_db", "get_settings", "settings"]
