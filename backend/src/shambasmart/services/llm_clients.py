"""
LLM Clients — Couche d'abstraction LLM multi-provider.

Changer de fournisseur se fait UNIQUEMENT ici + dans settings.py / .env.
Aucun agent ne connaît le provider : ils reçoivent une liste ordonnée de
backends et le TextGenerator les essaie dans l'ordre.

Providers supportés:
    - "azure" : Azure OpenAI (GPT-4o, GPT-4o-mini)
    - "groq"  : Groq Cloud (Llama 3)
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from shambasmart.core.settings import Settings, settings as default_settings

logger = logging.getLogger("ShambaSmart.LLM")


@dataclass(frozen=True)
class LLMBackend:
    """Un backend = un nom + une fabrique de chat model LangChain."""
    name: str
    factory: Callable[[float, int], object]

    def client(self, temperature: float, max_tokens: int):
        return self.factory(temperature, max_tokens)


def _azure_factory(cfg: Settings) -> Optional[Callable[[float, int], object]]:
    if not (cfg.AZURE_OPENAI_API_KEY and cfg.AZURE_OPENAI_ENDPOINT):
        return None

    def build(temperature: float, max_tokens: int):
        from langchain_openai import AzureChatOpenAI
        return AzureChatOpenAI(
            azure_deployment=cfg.AZURE_OPENAI_DEPLOYMENT_NAME,
            openai_api_version=cfg.AZURE_OPENAI_API_VERSION,
            azure_endpoint=cfg.AZURE_OPENAI_ENDPOINT,
            api_key=cfg.AZURE_OPENAI_API_KEY,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    return build


def _groq_factory(cfg: Settings) -> Optional[Callable[[float, int], object]]:
    if not cfg.GROQ_API_KEY:
        return None

    def build(temperature: float, max_tokens: int):
        from langchain_groq import ChatGroq
        return ChatGroq(
            api_key=cfg.GROQ_API_KEY,
            model_name=cfg.GROQ_MODEL,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    return build


_FACTORIES = {
    "azure": _azure_factory,
    "groq": _groq_factory,
}


def build_backends(cfg: Optional[Settings] = None) -> List[LLMBackend]:
    """
    Construit la liste ordonnée des backends configurés.

    Un backend sans identifiants est ignoré (loggé), jamais fatal :
    le processus démarre même sans aucun LLM, les réponses deviennent
    alors des excuses à confiance 0.
    """
    cfg = cfg or default_settings
    backends: List[LLMBackend] = []
    for name in cfg.LLM_BACKENDS:
        maker = _FACTORIES.get(name.lower())
        if maker is None:
            logger.warning("Unknown LLM backend '%s' ignored", name)
            continue
        factory = maker(cfg)
        if factory is None:
            logger.info("LLM backend '%s' not configured, skipped", name)
            continue
        backends.append(LLMBackend(name=name.lower(), factory=factory))

    if not backends:
        logger.warning("⚠️ No LLM backend configured — generation will fail gracefully.")
    else:
        logger.info("LLM fallback order: %s", " → ".join(b.name for b in backends))
    return backends


__all__ = ["LLMBackend", "build_backends"]
