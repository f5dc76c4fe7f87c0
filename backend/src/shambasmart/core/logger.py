"""
Logger centralisé pour ShambaSmart.

Tous les modules loggent sous la hiérarchie « ShambaSmart.* » ; la
configuration (stdout + app.log, Sentry optionnel) est faite une fois
par le lifespan FastAPI.
"""

import logging
import sys

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from shambasmart.core.settings import settings

ROOT_LOGGER = "ShambaSmart"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
NOISY_LIBRARIES = ("httpx", "httpcore", "urllib3", "uvicorn.access", "twilio", "apscheduler")

_configured = False


def _init_sentry(level: int) -> bool:
    """Sentry seulement si SENTRY_DSN est renseigné ; les logs ERROR deviennent des events."""
    if not settings.SENTRY_DSN:
        return False
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[LoggingIntegration(level=level, event_level=logging.ERROR)],
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"shambasmart@{settings.APP_VERSION}",
    )
    return True


def setup_logging(level: int = logging.INFO, log_file: str = "app.log") -> None:
    global _configured
    if _configured:
        return

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
    for noisy in NOISY_LIBRARIES:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if _init_sentry(level):
        get_logger("Sentry").info("Sentry initialized (%s)", settings.SENTRY_ENVIRONMENT)
    _configured = True


def get_logger(component: str) -> logging.Logger:
    """get_logger("Cache") → logger « ShambaSmart.Cache »."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


__all__ = ["setup_logging", "get_logger", "ROOT_LOGGER"]
