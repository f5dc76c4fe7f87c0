"""
WhatsApp — vérification du webhook (hub.*), réception, envoi via Twilio.

Deux formes de webhook entrant sont acceptées :
  - formulaire Twilio : From / Body
  - JSON WhatsApp Business : entry[0].changes[0].value.messages[0]
"""

import logging
from typing import Any, Dict, Optional, Tuple

from shambasmart.channels.base import ConversationService
from shambasmart.channels.twilio_gateway import TwilioGateway
from shambasmart.orchestrator.state import CanonicalMessage
from shambasmart.utils.sms_adapter import WHATSAPP_MAX_LENGTH

logger = logging.getLogger("ShambaSmart.Channels.WhatsApp")

TRUNCATION_NOTE = "\n\n[Message truncated]"


def truncate_for_whatsapp(text: str) -> str:
    if len(text) <= WHATSAPP_MAX_LENGTH:
        return text
    return text[:WHATSAPP_MAX_LENGTH - len(TRUNCATION_NOTE)] + TRUNCATION_NOTE


def extract_inbound(payload: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """(expéditeur, texte) ou None si le webhook ne porte pas de message texte."""
    if payload.get("From") and payload.get("Body"):
        return str(payload["From"]).replace("whatsapp:", ""), str(payload["Body"])

    if payload.get("object") == "whatsapp_business_account":
        try:
            value = payload["entry"][0]["changes"][0]["value"]
            message = value["messages"][0]
        except (KeyError, IndexError, TypeError):
            return None
        text = (message.get("text") or {}).get("body") or ""
        if message.get("from") and text:
            return str(message["from"]), text
    return None


class WhatsAppChannel:
    name = "whatsapp"

    def __init__(self, conversation: ConversationService, gateway: TwilioGateway, verify_token: str):
        self.conversation = conversation
        self.gateway = gateway
        self.verify_token = verify_token

    def verify(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        """Renvoie le challenge si la vérification réussit, None sinon (→ 403)."""
        if mode == "subscribe" and token == self.verify_token:
            logger.info("✅ WhatsApp webhook verified")
            return challenge or ""
        logger.warning("WhatsApp webhook verification failed (mode=%r)", mode)
        return None

    def handle_inbound(self, payload: Dict[str, Any]) -> Optional[str]:
        inbound = extract_inbound(payload)
        if inbound is None:
            logger.debug("WhatsApp webhook without text message, ignored")
            return None
        sender, text = inbound
        reply = self.conversation.process_inbound_message(CanonicalMessage(
            channel=self.name,
            from_identity=sender,
            content=text,
        ))
        self.send_message(sender, reply)
        return reply

    def send_message(self, identity: str, text: str) -> bool:
        return self.gateway.send_whatsapp(identity, truncate_for_whatsapp(text))
