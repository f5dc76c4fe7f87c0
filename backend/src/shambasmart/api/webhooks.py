"""
Webhooks des transports (SMS, WhatsApp, USSD, voix).

Règle : toujours répondre 2xx au fournisseur, même si le traitement
interne échoue (évite les tempêtes de retries), et journaliser l'erreur.
SMS et WhatsApp répondent immédiatement ; la réponse est poussée par
l'API Twilio depuis une BackgroundTask.
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from shambasmart.api.dependencies import ServiceContainer, get_container
from shambasmart.channels.ussd import ERROR_MESSAGE as USSD_ERROR
from shambasmart.channels.voice import VoiceChannel
from shambasmart.core.rate_limit import webhook_limiter

logger = logging.getLogger("ShambaSmart.Webhooks")

router = APIRouter(prefix="/webhook", dependencies=[Depends(webhook_limiter)])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


async def read_payload(request: Request) -> Dict[str, Any]:
    """Corps JSON ou formulaire, {} si illisible."""
    try:
        if "application/json" in request.headers.get("content-type", ""):
            body = await request.json()
            return body if isinstance(body, dict) else {}
        return dict(await request.form())
    except Exception as e:
        logger.warning("Unreadable webhook payload on %s: %s", request.url.path, e)
        return {}


def _run_safely(label: str, fn, *args) -> None:
    try:
        fn(*args)
    except Exception as e:
        logger.error("❌ %s processing failed: %s", label, e, exc_info=True)


# ── SMS ─────────────────────────────────────────────────────

@router.post("/sms")
async def sms_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    container: ServiceContainer = Depends(get_container),
):
    payload = await read_payload(request)
    sender, body = payload.get("From", ""), payload.get("Body", "")
    if sender and body:
        background_tasks.add_task(
            _run_safely, "SMS", container.sms.handle_inbound, sender, body, payload.get("MessageSid", ""),
        )
    return Response(content=EMPTY_TWIML, media_type="application/xml")


# ── WhatsApp ────────────────────────────────────────────────

@router.get("/whatsapp")
def whatsapp_verify(
    mode: str = Query(default=None, alias="hub.mode"),
    token: str = Query(default=None, alias="hub.verify_token"),
    challenge: str = Query(default=None, alias="hub.challenge"),
    container: ServiceContainer = Depends(get_container),
):
    result = container.whatsapp.verify(mode, token, challenge)
    if result is None:
        return PlainTextResponse("Forbidden", status_code=403)
    return PlainTextResponse(result)


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    container: ServiceContainer = Depends(get_container),
):
    payload = await read_payload(request)
    background_tasks.add_task(_run_safely, "WhatsApp", container.whatsapp.handle_inbound, payload)
    return JSONResponse({"status": "received"})


# ── USSD ────────────────────────────────────────────────────

@router.post("/ussd")
async def ussd_webhook(request: Request, container: ServiceContainer = Depends(get_container)):
    payload = await read_payload(request)
    try:
        text = await asyncio.to_thread(
            container.ussd.handle,
            str(payload.get("sessionId", "")),
            str(payload.get("phoneNumber", "")),
            str(payload.get("text", "")),
        )
    except Exception as e:
        logger.error("Error handling USSD request: %s", e, exc_info=True)
        text = USSD_ERROR
    return PlainTextResponse(text)


# ── Voix ────────────────────────────────────────────────────

async def _voice_reply(request: Request, container: ServiceContainer) -> Response:
    payload = await read_payload(request)
    try:
        twiml = await asyncio.to_thread(
            container.voice.answer,
            str(payload.get("From", "")),
            payload.get("SpeechResult"),
            str(payload.get("CallSid", "")),
        )
    except Exception as e:
        logger.error("Error handling voice webhook: %s", e, exc_info=True)
        twiml = VoiceChannel.error()
    return Response(content=twiml, media_type="text/xml")


@router.post("/voice")
async def voice_webhook(request: Request, container: ServiceContainer = Depends(get_container)):
    """Appel entrant : accueil et collecte de la question (ou réponse si déjà transcrite)."""
    return await _voice_reply(request, container)


@router.post("/voice/process")
async def voice_process(request: Request, container: ServiceContainer = Depends(get_container)):
    return await _voice_reply(request, container)
