"""
Génération de texte avec repli ordonné entre backends.

L'ordre de repli est une donnée (liste de LLMBackend), pas une cascade de
try/except imbriqués : un seul combinateur parcourt la liste et retourne
la première réponse non vide.
"""

import logging
import re
from typing import List, Optional, Sequence

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from shambasmart.services.llm_clients import LLMBackend

logger = logging.getLogger("ShambaSmart.Generation")

_QA_PATTERNS = [
    re.compile(r"^\*\*Question:\*\*\s*.+?\n\n", re.IGNORECASE | re.DOTALL),
    re.compile(r"^\*\*Answer:\*\*\s*", re.IGNORECASE),
    re.compile(r"^Question:\s*.+?\n\n", re.IGNORECASE | re.DOTALL),
    re.compile(r"^Answer:\s*", re.IGNORECASE),
    re.compile(r"^(Question|Answer):\s*$", re.IGNORECASE | re.MULTILINE),
]

# Indices de diagnostic loggés (jamais renvoyés à l'utilisateur)
_DIAGNOSTIC_HINTS = (
    (("401", "unauthorized", "invalid api key", "authentication"), "check the API key / credentials"),
    (("403", "permission", "does not have access", "forbidden"), "account lacks access to this model"),
    (("404", "not found", "deploymentnotfound"), "model or deployment not available in this region/endpoint"),
    (("429", "rate limit", "quota"), "quota or rate limit reached"),
)


class AllBackendsFailed(RuntimeError):
    """Aucun backend n'a produit de réponse."""

    def __init__(self, attempts: List[str]):
        super().__init__("All LLM backends failed: " + "; ".join(attempts) if attempts else "No LLM backend configured")
        self.attempts = attempts


def clean_response(text: str) -> str:
    """Retire les en-têtes 'Question:' / 'Answer:' que certains modèles recopient."""
    cleaned = text or ""
    for pattern in _QA_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def _diagnose(error: Exception) -> str:
    message = str(error).lower()
    for needles, hint in _DIAGNOSTIC_HINTS:
        if any(n in message for n in needles):
            return hint
    return "unexpected provider error"


class TextGenerator:
    """Point d'entrée unique vers les LLM, avec repli ordonné."""

    def __init__(
        self,
        backends: Sequence[LLMBackend],
        default_temperature: float = 0.3,
        default_max_tokens: int = 2000,
    ):
        self.backends = list(backends)
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.parser = StrOutputParser()

    @staticmethod
    def _prompt(with_system: bool) -> ChatPromptTemplate:
        messages = [("human", "{prompt}")]
        if with_system:
            messages.insert(0, ("system", "{system}"))
        return ChatPromptTemplate.from_messages(messages)

    def generate(
        self,
        prompt: str,
        system_instructions: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Essaie chaque backend dans l'ordre. Lève AllBackendsFailed si tous échouent."""
        temperature = self.default_temperature if temperature is None else temperature
        max_tokens = max_tokens or self.default_max_tokens
        variables = {"prompt": prompt}
        if system_instructions:
            variables["system"] = system_instructions

        attempts: List[str] = []
        for backend in self.backends:
            try:
                chain = self._prompt(bool(system_instructions)) | backend.client(temperature, max_tokens) | self.parser
                text = clean_response(chain.invoke(variables))
                if text:
                    return text
                attempts.append(f"{backend.name}: empty response")
                logger.warning("LLM backend '%s' returned an empty response", backend.name)
            except Exception as e:
                attempts.append(f"{backend.name}: {type(e).__name__}")
                logger.warning(
                    "LLM backend '%s' failed (%s: %s) — hint: %s",
                    backend.name, type(e).__name__, e, _diagnose(e),
                    exc_info=True,
                )

        logger.error("❌ Generation failed on every backend: %s", attempts or "none configured")
        raise AllBackendsFailed(attempts)


__all__ = ["TextGenerator", "AllBackendsFailed", "clean_response"]
