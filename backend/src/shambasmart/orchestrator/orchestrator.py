"""
AgentOrchestrator — point d'entrée conversationnel.

Flux par requête (aucun état persistant) :
    salutation ? → traduction pivot → intention → salutation ? →
    dispatch (fan-out) → fusion → traduction de sortie

Le contrat public ne lève jamais : toute erreur devient un message
d'excuse fixe.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional, Sequence

from shambasmart.agents.base import TopicGenerator
from shambasmart.orchestrator.intention import Intent, IntentClassifier, greeting_reply, is_greeting
from shambasmart.orchestrator.state import AgentResponse, ConversationTurn, UserContext
from shambasmart.services.translator import PIVOT_LANGUAGE, Translator

logger = logging.getLogger("ShambaSmart.Orchestrator")

ORCHESTRATOR_APOLOGY = "Sorry, I encountered an error. Please try again or contact support."
NO_RESPONSE = "I could not find relevant information."
SECONDARY_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_TOPIC = "crop"

# Intention → nom du générateur
INTENT_ROUTES: Dict[Intent, str] = {
    Intent.CROP: "crop",
    Intent.LIVESTOCK: "livestock",
    Intent.PEST: "pest",
    Intent.WEATHER: "climate",
    Intent.MARKET: "market",
    Intent.EXTENSION: "extension",
}


def route_topics(intents: Sequence[Intent]) -> List[str]:
    """Générateurs à appeler, dans l'ordre des intentions ; crop par défaut."""
    topics: List[str] = []
    for intent in intents:
        topic = INTENT_ROUTES.get(intent)
        if topic and topic not in topics:
            topics.append(topic)
    return topics or [DEFAULT_TOPIC]


def merge_responses(responses: Sequence[AgentResponse]) -> str:
    """
    La réponse principale est toujours gardée, même à confiance 0.
    Les suivantes ne sont ajoutées que si leur confiance dépasse 0.5.
    """
    if not responses:
        return NO_RESPONSE
    if len(responses) == 1:
        return responses[0]["response"]

    parts = [responses[0]["response"]]
    parts.extend(
        r["response"] for r in responses[1:]
        if r["confidence"] > SECONDARY_CONFIDENCE_THRESHOLD
    )
    return "\n\n".join(parts)


class AgentOrchestrator:
    def __init__(
        self,
        classifier: IntentClassifier,
        generators: Mapping[str, TopicGenerator],
        translator: Optional[Translator] = None,
        generator_timeout: float = 60.0,
        max_workers: int = 6,
    ):
        self.classifier = classifier
        self.generators = dict(generators)
        self.translator = translator
        self.generator_timeout = generator_timeout
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="agent")

    # ── Traduction ──────────────────────────────────────────

    def _translate(self, text: str, source: str, target: str) -> str:
        if self.translator is None or source == target:
            return text
        return self.translator.translate(text, source, target)

    def _greeting(self, language: str, history: Sequence[ConversationTurn]) -> str:
        if language in ("en", "sw"):
            return greeting_reply(language, history)
        return self._translate(greeting_reply(PIVOT_LANGUAGE, history), PIVOT_LANGUAGE, language)

    # ── Dispatch ────────────────────────────────────────────

    def _timeout_response(self, topic: str) -> AgentResponse:
        generator = self.generators[topic]
        return AgentResponse(
            agent=topic,
            response=generator.strategy.apology,
            confidence=0.0,
            metadata={"error": True, "timeout": True},
        )

    def _failure_response(self, topic: str, error: Exception) -> AgentResponse:
        return AgentResponse(
            agent=topic,
            response=self.generators[topic].strategy.apology,
            confidence=0.0,
            metadata={"error": True, "errorType": type(error).__name__},
        )

    def dispatch(
        self,
        query: str,
        context: UserContext,
        history: Sequence[ConversationTurn],
        intents: Sequence[Intent],
    ) -> List[AgentResponse]:
        topics = [t for t in route_topics(intents) if t in self.generators]
        if not topics:
            topics = [DEFAULT_TOPIC]
        logger.info("🔀 Dispatching to: %s", ", ".join(topics))

        if len(topics) == 1:
            return [self.generators[topics[0]].process(query, context, history)]

        futures = [
            (topic, self.executor.submit(self.generators[topic].process, query, context, history))
            for topic in topics
        ]
        # Une seule échéance pour tout le lot
        wait([f for _, f in futures], timeout=self.generator_timeout)
        responses: List[AgentResponse] = []
        for topic, future in futures:
            if not future.done():
                future.cancel()
                logger.error("⏱️ Generator '%s' timed out after %.0fs", topic, self.generator_timeout)
                responses.append(self._timeout_response(topic))
                continue
            try:
                responses.append(future.result())
            except Exception as e:
                logger.error("❌ Generator '%s' failed: %s", topic, e, exc_info=True)
                responses.append(self._failure_response(topic, e))
        return responses

    # ── Point d'entrée ──────────────────────────────────────

    def process_query(
        self,
        query: str,
        context: UserContext,
        history: Optional[Sequence[ConversationTurn]] = None,
        language: str = "en",
    ) -> str:
        history = list(history or [])
        language = language or context.language
        try:
            if is_greeting(query):
                return self._greeting(language, history)

            processed = query
            if language != PIVOT_LANGUAGE:
                processed = self._translate(query, language, PIVOT_LANGUAGE)
                logger.info("Translated query from %s: %r -> %r", language, query[:60], processed[:60])

            intents = self.classifier.classify(processed, context, history)
            if intents[0] is Intent.GREETING:
                return self._greeting(language, history)

            responses = self.dispatch(processed, context, history, intents)
            merged = merge_responses(responses)

            if language != PIVOT_LANGUAGE:
                merged = self._translate(merged, PIVOT_LANGUAGE, language)
            return merged
        except Exception as e:
            logger.error("❌ Error in agent orchestrator: %s", e, exc_info=True)
            return ORCHESTRATOR_APOLOGY

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)


__all__ = ["AgentOrchestrator", "merge_responses", "route_topics", "INTENT_ROUTES", "ORCHESTRATOR_APOLOGY"]
