"""
Database — Connexion centralisée SQLAlchemy.

Usage:
    from shambasmart.core.database import init_db, get_session_factory
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from shambasmart.core.settings import settings

logger = logging.getLogger("ShambaSmart.Database")

# ---------- Engine (créé une seule fois au démarrage) ----------

_engine = None
_SessionLocal = None


def init_db(url: Optional[str] = None) -> bool:
    """Initialise le moteur, crée les tables. Retourne False si pas de DB configurée."""
    global _engine, _SessionLocal
    url = url if url is not None else settings.DATABASE_URL
    if not url:
        logger.warning("DATABASE_URL non configurée — historique en mémoire.")
        return False

    kwargs = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    try:
        _engine = create_engine(url, **kwargs)
        from shambasmart.services.models import Base
        Base.metadata.create_all(bind=_engine)
    except Exception as e:
        logger.error("❌ Database init failed, falling back to in-memory history: %s", e)
        _engine = None
        return False
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.info("✅ Database engine initialisé.")
    return True


def close_db() -> None:
    """Ferme proprement le pool de connexions. Appelé au shutdown FastAPI."""
    global _engine, _SessionLocal
    if _engine:
        _engine.dispose()
        logger.info("🔒 Database engine fermé.")
    _engine = None
    _SessionLocal = None


def get_session_factory():
    """Retourne la session factory, ou None si la DB n'est pas initialisée."""
    return _SessionLocal


def check_connection() -> bool:
    """Vérifie que la base est accessible."""
    if _engine is None:
        return False
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("DB health check échoué: %s", e)
        return False
