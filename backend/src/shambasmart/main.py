"""
ShambaSmart Backend — Point d'entrée FastAPI.

Responsabilités :
  1. Configurer le logging
  2. Créer l'app FastAPI avec métadonnées
  3. Ajouter middlewares (CORS, error handlers)
  4. Brancher le lifecycle (startup → DB, services, scheduler ; shutdown → inverse)
  5. Inclure les routes et les webhooks
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shambasmart.api.dependencies import _get_container, reset_container
from shambasmart.api.routes import health_router, router
from shambasmart.api.webhooks import router as webhook_router
from shambasmart.core.database import close_db, init_db
from shambasmart.core.logger import get_logger, setup_logging
from shambasmart.core.rate_limit import RateLimitExceeded
from shambasmart.core.settings import settings
from shambasmart.services.scheduling import start_scheduler, stop_scheduler

logger = get_logger("App")


# ── Lifecycle ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / Shutdown hooks."""
    setup_logging()
    logger.info("🚀 Starting ShambaSmart v%s …", settings.APP_VERSION)

    # Sans DATABASE_URL (ou en cas d'échec) : historique en mémoire
    init_db()

    scheduler = None
    container = _get_container()
    if container is not None:
        scheduler = start_scheduler(
            cache=container.cache,
            alert_service=container.alerts if settings.ALERTS_ENABLED else None,
            sweep_minutes=settings.CACHE_SWEEP_MINUTES,
            alert_minutes=settings.ALERT_INTERVAL_MINUTES,
        )

    yield  # ← app is running

    # Shutdown
    stop_scheduler(scheduler)
    reset_container()
    close_db()
    logger.info("🛑 ShambaSmart stopped.")


# ── App Factory ──────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-channel agricultural assistant — SMS, WhatsApp, USSD, voice and web",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# ── Middlewares ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content=exc.detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Corps mal formé → 400 {"error": ...}, comme les champs manquants."""
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all pour les erreurs non gérées → JSON propre."""
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method, request.url.path, exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error. Please try again later."},
    )


# ── Routes ───────────────────────────────────────────────────

app.include_router(health_router)
app.include_router(router)
app.include_router(webhook_router)


# ── Standalone runner ────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "shambasmart.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
