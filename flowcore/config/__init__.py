"""
flowcore Configuration

Environment-driven runtime settings.
"""

from .schemas import EngineSettings
from .settings import configure_logging, get_settings, reset_settings

__all__ = [
    "EngineSettings",
    "configure_logging",
    "get_settings",
    "reset_settings",
]
