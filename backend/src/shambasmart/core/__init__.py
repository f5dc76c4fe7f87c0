"""
Core Module — Fondations transverses ShambaSmart.

- settings    : Configuration centralisée (Pydantic Settings)
- database    : Connexion SQL (SQLAlchemy)
- logger      : Logging unifié (stdlib + Sentry optionnel)
- rate_limit  : Limiteurs à fenêtre glissante (dependencies FastAPI)
"""

from .settings import settings
from .logger import setup_logging, get_logger
from .database import init_db, close_db, get_session_factory, check_connection

__all__ = [
    "settings",
    "setup_logging", "get_logger",
    "init_db", "close_db", "get_session_factory", "check_connection",
]
