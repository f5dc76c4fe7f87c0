"""
Routes API — chat web, historique, localisation, santé.

Le traitement conversationnel est synchrone : il tourne dans un thread
(asyncio.to_thread) pour ne pas bloquer la boucle d'événements.
Seuls les champs obligatoires manquants produisent un statut non-2xx.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shambasmart.api.dependencies import ServiceContainer, get_container, peek_container
from shambasmart.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    HistoryResponse,
    LocationRequest,
    LocationResponse,
)
from shambasmart.channels.web import UserNotFound
from shambasmart.core.database import check_connection, get_session_factory
from shambasmart.core.rate_limit import chat_limiter, general_limiter, location_limiter
from shambasmart.core.settings import settings

logger = logging.getLogger("ShambaSmart.API")

# /health : hors de tout rate limiting
health_router = APIRouter()
router = APIRouter(dependencies=[Depends(general_limiter)])

BAD_REQUEST = {400: {"model": ErrorResponse}}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


# ── Health / Root ───────────────────────────────────────────

@health_router.get("/health", response_model=HealthResponse)
def health_check():
    """Toujours 200 si le processus tourne ; détaille l'état DB et cache."""
    if get_session_factory() is None:
        database = "memory"
    else:
        database = "connected" if check_connection() else "disconnected"
    container = peek_container()
    return HealthResponse(
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        database=database,
        cache=container.cache_backend() if container is not None else "not initialized",
    )


@health_router.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


# ── Chat ────────────────────────────────────────────────────

@router.post(
    "/api/chat", response_model=ChatResponse, responses=BAD_REQUEST, dependencies=[Depends(chat_limiter)],
)
async def chat(req: ChatRequest, container: ServiceContainer = Depends(get_container)):
    if not (req.identity or "").strip() or not (req.message or "").strip():
        return _bad_request("identity (or phoneNumber) and message are required")

    logger.info("Chat request from %s (lang=%s)", req.identity, req.language or "default")
    response = await asyncio.to_thread(container.web.chat, req.identity.strip(), req.message, req.language or "")
    return ChatResponse(response=response)


@router.get("/api/chat/history", response_model=HistoryResponse, responses=BAD_REQUEST)
async def chat_history(
    identity: Optional[str] = Query(default=None),
    phone_number: Optional[str] = Query(default=None, alias="phoneNumber"),
    container: ServiceContainer = Depends(get_container),
):
    identity = identity or phone_number
    if not identity:
        return _bad_request("identity (or phoneNumber) is required")
    messages = await asyncio.to_thread(container.web.history, identity)
    return HistoryResponse(messages=messages)


# ── Localisation ────────────────────────────────────────────

@router.post(
    "/api/user/location",
    response_model=LocationResponse,
    responses={**BAD_REQUEST, 404: {"model": ErrorResponse}},
    dependencies=[Depends(location_limiter)],
)
async def update_location(req: LocationRequest, container: ServiceContainer = Depends(get_container)):
    if not req.identity or req.latitude is None or req.longitude is None:
        return _bad_request("identity (or phoneNumber), latitude, and longitude are required")
    try:
        result = await asyncio.to_thread(
            container.web.update_location, req.identity, req.latitude, req.longitude,
        )
    except UserNotFound:
        return JSONResponse(status_code=404, content={"error": "User not found"})
    return LocationResponse(**result)


# ── Cache ───────────────────────────────────────────────────

@router.get("/api/cache/stats")
def cache_stats(container: ServiceContainer = Depends(get_container)):
    return container.cache.get_stats()
