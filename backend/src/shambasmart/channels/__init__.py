"""
Channels — adaptateurs de transport.

Chaque canal convertit son format en CanonicalMessage, appelle
ConversationService.process_inbound_message puis rend la réponse
dans son propre format (SMS, WhatsApp, USSD, TwiML, JSON).
"""

from .base import ConversationService, extract_context
from .sms import SMSChannel
from .twilio_gateway import TwilioGateway
from .ussd import USSDChannel
from .voice import VoiceChannel
from .web import UserNotFound, WebChannel
from .whatsapp import WhatsAppChannel

__all__ = [
    "ConversationService",
    "extract_context",
    "TwilioGateway",
    "SMSChannel",
    "WhatsAppChannel",
    "USSDChannel",
    "VoiceChannel",
    "WebChannel",
    "UserNotFound",
]
