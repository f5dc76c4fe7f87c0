"""SMS (Twilio) — réception par webhook, réponse poussée via l'API."""

import logging

from shambasmart.channels.base import ConversationService
from shambasmart.channels.twilio_gateway import TwilioGateway
from shambasmart.orchestrator.state import CanonicalMessage
from shambasmart.utils.sms_adapter import SMSAdapter

logger = logging.getLogger("ShambaSmart.Channels.SMS")


class SMSChannel:
    name = "sms"

    def __init__(self, conversation: ConversationService, gateway: TwilioGateway):
        self.conversation = conversation
        self.gateway = gateway

    def handle_inbound(self, from_number: str, body: str, message_sid: str = "") -> str:
        """Traite un SMS entrant et renvoie la réponse par SMS."""
        if not from_number or not (body or "").strip():
            logger.info("Ignoring empty SMS webhook (from=%r)", from_number)
            return ""
        reply = self.conversation.process_inbound_message(CanonicalMessage(
            channel=self.name,
            from_identity=from_number,
            content=body,
            metadata={"messageSid": message_sid} if message_sid else {},
        ))
        self.send_message(from_number, reply)
        return reply

    def send_message(self, identity: str, text: str) -> bool:
        return self.gateway.send_sms(identity, SMSAdapter.compress_for_sms(text))
