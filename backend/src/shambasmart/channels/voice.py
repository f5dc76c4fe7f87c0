"""Voix (Twilio TwiML) — accueil avec collecte de la parole, réponse lue."""

import logging
from typing import Optional

from twilio.twiml.voice_response import VoiceResponse

from shambasmart.channels.base import ConversationService
from shambasmart.orchestrator.state import CanonicalMessage
from shambasmart.utils.sms_adapter import SMSAdapter

logger = logging.getLogger("ShambaSmart.Channels.Voice")

VOICE = "alice"
WELCOME_PROMPT = "Welcome to ShambaSmart AI. Please tell me your farming question."
GOODBYE = "Thank you for calling ShambaSmart AI. Goodbye."
ERROR_PROMPT = "Sorry, an error occurred. Please try again later."
NO_INPUT_PROMPT = "Sorry, I did not hear a question."


class VoiceChannel:
    name = "voice"

    def __init__(self, conversation: ConversationService, action_url: str = "/webhook/voice/process"):
        self.conversation = conversation
        self.action_url = action_url

    def welcome(self) -> str:
        response = VoiceResponse()
        gather = response.gather(
            input="speech",
            language="en-US",
            speech_timeout="auto",
            action=self.action_url,
            method="POST",
        )
        gather.say(WELCOME_PROMPT, voice=VOICE, language="en-US")
        response.say(NO_INPUT_PROMPT, voice=VOICE, language="en-US")
        return str(response)

    def answer(self, from_number: str, speech: Optional[str], call_sid: str = "") -> str:
        response = VoiceResponse()
        try:
            if not (speech or "").strip():
                return self.welcome()
            reply = self.conversation.process_inbound_message(CanonicalMessage(
                channel=self.name,
                from_identity=from_number,
                content=speech,
                metadata={"callSid": call_sid} if call_sid else {},
            ))
            response.say(SMSAdapter.strip_markdown(reply), voice=VOICE, language="en-US")
            response.pause(length=1)
            response.say(GOODBYE, voice=VOICE, language="en-US")
        except Exception as e:
            logger.error("Error handling voice webhook: %s", e, exc_info=True)
            response = VoiceResponse()
            response.say(ERROR_PROMPT, voice=VOICE, language="en-US")
        return str(response)

    @staticmethod
    def error() -> str:
        response = VoiceResponse()
        response.say(ERROR_PROMPT, voice=VOICE, language="en-US")
        return str(response)
