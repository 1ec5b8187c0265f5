"""
FastAPI dependency exposing application settings to route handlers.
"""

from tokenkeeper.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Return the process-wide settings; tests override this dependency."""
    return get_settings()


__all__ = ["get_app_settings"]
