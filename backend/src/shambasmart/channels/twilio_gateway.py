"""
TwilioGateway — envoi SMS / WhatsApp via Twilio.

PRINCIPES :
  - Twilio importé LAZY (à la première émission)
  - Validation du numéro de téléphone avant envoi
  - Identifiants absents → envoi refusé (False), jamais d'exception au démarrage
  - Toute erreur d'envoi est journalisée et renvoie False
"""

import logging
import re
import threading
from typing import Optional

logger = logging.getLogger("ShambaSmart.Twilio")

# Regex basique pour valider un numéro international
_PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{7,14}$")


def normalize_phone(number: str) -> Optional[str]:
    """Numéro nettoyé (sans espaces, tirets, parenthèses, préfixe whatsapp:) ou None si invalide."""
    cleaned = re.sub(r"[\s\-\(\)]", "", (number or "").replace("whatsapp:", ""))
    return cleaned if _PHONE_PATTERN.match(cleaned) else None


class TwilioGateway:
    def __init__(
        self,
        account_sid: str = "",
        auth_token: str = "",
        sms_number: str = "",
        whatsapp_number: str = "",
        client=None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sms_number = sms_number
        self.whatsapp_number = whatsapp_number
        self._client = client
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.account_sid and self.auth_token)

    def _get_client(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    from twilio.rest import Client
                    self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def _send(self, channel: str, from_number: str, to_number: str, body: str) -> bool:
        if not body or not body.strip():
            logger.warning("Empty %s message to %s, nothing to send", channel, to_number)
            return False
        if not self.configured or not from_number:
            logger.warning("⚠️ Twilio %s not configured, message to %s not sent", channel, to_number)
            return False

        phone = normalize_phone(to_number)
        if phone is None:
            logger.warning("Invalid phone number format for %s: %s", channel, to_number)
            return False

        prefix = "whatsapp:" if channel == "whatsapp" else ""
        from_ = from_number if (not prefix or from_number.startswith(prefix)) else prefix + from_number
        try:
            message = self._get_client().messages.create(from_=from_, to=prefix + phone, body=body)
            logger.info("📤 %s sent to %s (sid=%s)", channel, phone, getattr(message, "sid", "?"))
            return True
        except Exception as e:
            logger.error("❌ Error sending %s to %s: %s", channel, phone, e, exc_info=True)
            return False

    def send_sms(self, to_number: str, body: str) -> bool:
        return self._send("sms", self.sms_number, to_number, body)

    def send_whatsapp(self, to_number: str, body: str) -> bool:
        return self._send("whatsapp", self.whatsapp_number, to_number, body)


__all__ = ["TwilioGateway", "normalize_phone"]
