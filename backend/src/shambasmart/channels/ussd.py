"""
USSD — session à menu (préfixes CON / END).

Le fournisseur renvoie tout le parcours dans `text`, séparé par « * » :
    ""        → menu
    "1"       → question prédéfinie du thème 1
    "1*texte" → question libre après un choix de menu
    "…*0"     → fin de session
"""

import logging
from typing import Optional

from shambasmart.channels.base import ConversationService
from shambasmart.orchestrator.state import CanonicalMessage
from shambasmart.utils.sms_adapter import USSD_MAX_LENGTH, SMSAdapter

logger = logging.getLogger("ShambaSmart.Channels.USSD")

MAIN_MENU = (
    "CON Welcome to ShambaSmart AI\n"
    "1. Crop Advice\n"
    "2. Livestock Health\n"
    "3. Pest & Disease\n"
    "4. Weather Forecast\n"
    "5. Market Prices\n"
    "0. Exit"
)
MENU_QUESTIONS = {
    "1": "I need crop advice",
    "2": "I need livestock health information",
    "3": "I have a pest or disease problem",
    "4": "What is the weather forecast?",
    "5": "What are the current market prices?",
}
EXIT_MESSAGE = "END Thank you for using ShambaSmart AI!"
INVALID_SELECTION = "CON Invalid selection. Please try again.\n\n0. Exit"
ERROR_MESSAGE = "END Sorry, an error occurred. Please try again later."
BACK_HINT = "\n\n0. Exit"


def question_for(text: str) -> Optional[str]:
    """Question à poser pour le parcours USSD, None si la saisie est invalide."""
    steps = [s.strip() for s in text.split("*")]
    last = steps[-1]
    if last in MENU_QUESTIONS and len(steps) == 1:
        return MENU_QUESTIONS[last]
    if len(steps) > 1 and steps[0] in MENU_QUESTIONS and last:
        return last if last not in MENU_QUESTIONS else MENU_QUESTIONS[last]
    return None


class USSDChannel:
    name = "ussd"

    def __init__(self, conversation: ConversationService):
        self.conversation = conversation

    def handle(self, session_id: str, phone_number: str, text: str) -> str:
        try:
            text = (text or "").strip()
            if not text:
                return MAIN_MENU
            if text.split("*")[-1].strip() == "0":
                return EXIT_MESSAGE

            question = question_for(text)
            if question is None:
                return INVALID_SELECTION

            reply = self.conversation.process_inbound_message(CanonicalMessage(
                channel=self.name,
                from_identity=phone_number,
                content=question,
                metadata={"sessionId": session_id, "menuInput": text},
            ))
            body = SMSAdapter.format_for_ussd(reply, USSD_MAX_LENGTH)
            return f"CON {body}{BACK_HINT}"
        except Exception as e:
            logger.error("Error handling USSD request: %s", e, exc_info=True)
            return ERROR_MESSAGE
