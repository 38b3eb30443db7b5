"""Core app configuration, database, and security primitives."""

from bitebox.core.config import get_settings, settings
from bitebox.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
