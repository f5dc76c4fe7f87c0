"""
Pipeline commun des générateurs thématiques.

Un générateur = une TopicStrategy (construction du prompt + instructions
système + message d'excuse) exécutée par `run_pipeline` :

    valider → normaliser → analyser → récupérer → (cache) → générer → confiance

Aucune exception ne remonte à l'orchestrateur : une entrée invalide ou
une génération en échec produit une réponse de confiance 0.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from shambasmart.orchestrator.state import AgentResponse, ConversationTurn, UserContext
from shambasmart.services.generation import TextGenerator
from shambasmart.services.market import MarketService
from shambasmart.services.retriever import KnowledgeRetriever, RetrievalContext
from shambasmart.services.soil import SoilService
from shambasmart.services.weather import WeatherService
from shambasmart.tools.knowledge_base import LocalDataSource
from shambasmart.utils import input_validator
from shambasmart.utils.query_analyzer import QueryAnalysis, analyze

logger = logging.getLogger("ShambaSmart.Agents")

T = TypeVar("T")

INVALID_INPUT_REPLY = "I apologize, but I couldn't understand your question. Could you please rephrase it?"
GENERATION_TEMPERATURE = 0.2


# ── Outils partagés ─────────────────────────────────────────

@dataclass
class AgentToolkit:
    """Sources de données et enrichissements accessibles aux stratégies."""
    local: LocalDataSource
    weather: Optional[WeatherService] = None
    soil: Optional[SoilService] = None
    market: Optional[MarketService] = None
    enrichment_timeout: float = 5.0
    executor: ThreadPoolExecutor = field(
        default_factory=lambda: ThreadPoolExecutor(max_workers=4, thread_name_prefix="enrich")
    )

    def enrich(self, label: str, fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
        """Appel opportuniste borné par `enrichment_timeout` ; None si lent ou en erreur."""
        future = self.executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.enrichment_timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning("⏱️ %s enrichment timed out after %.1fs, continuing without it",
                           label, self.enrichment_timeout)
        except Exception as e:
            logger.warning("%s enrichment failed, continuing without it: %s", label, e)
        return None

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)


@dataclass
class TopicRequest:
    """Entrées de la construction de prompt."""
    query: str
    context: UserContext
    passages: List[str]
    history: List[ConversationTurn]
    analysis: QueryAnalysis
    toolkit: AgentToolkit


@dataclass(frozen=True)
class TopicStrategy:
    name: str
    build_prompt: Callable[[TopicRequest], str]
    apology: str
    system_instructions: Optional[str] = None
    temperature: float = GENERATION_TEMPERATURE


# ── Confiance ───────────────────────────────────────────────

def compute_confidence(passage_count: int, analysis: QueryAnalysis) -> float:
    """
    Base 0.3 → 0.5 (≥1 passage) → 0.8 (≥3) → 0.9 (≥5).
    Simple avec passages : +0.1 ; complexe avec moins de 3 passages : -0.2 (plancher 0.3).
    +0.05 par mot-clé agricole, plafond 0.95.
    """
    confidence = 0.3
    if passage_count >= 5:
        confidence = 0.9
    elif passage_count >= 3:
        confidence = 0.8
    elif passage_count >= 1:
        confidence = 0.5

    if analysis.complexity == "simple" and passage_count > 0:
        confidence = min(confidence + 0.1, 0.95)
    if analysis.complexity == "complex" and passage_count < 3:
        confidence = max(confidence - 0.2, 0.3)

    confidence = min(confidence + 0.05 * len(analysis.keywords), 0.95)
    return round(confidence, 2)


# ── Pipeline ────────────────────────────────────────────────

def retrieval_context(context: UserContext) -> RetrievalContext:
    user = context.user
    return RetrievalContext(
        crop=context.crop,
        region=context.region or user.county,
        soil_type=context.soil_type or user.soil_type,
        farm_stage=context.farm_stage,
        livestock=user.livestock[0] if user.livestock else None,
    )


def run_pipeline(
    strategy: TopicStrategy,
    generator: TextGenerator,
    retriever: KnowledgeRetriever,
    toolkit: AgentToolkit,
    query: str,
    context: UserContext,
    history: Optional[Sequence[ConversationTurn]] = None,
    cache: Any = None,
) -> AgentResponse:
    history = list(history or [])
    validation = input_validator.validate(query)
    if not validation.is_valid:
        logger.warning("Invalid input for %s: %s", strategy.name, validation.errors)
        return AgentResponse(
            agent=strategy.name,
            response=INVALID_INPUT_REPLY,
            confidence=0.0,
            metadata={"errors": list(validation.errors)},
        )

    try:
        normalized = input_validator.normalize(validation.sanitized)
        analysis = analyze(normalized)
        retrieval = retrieval_context(context)
        passages = retriever.retrieve(normalized, retrieval)

        # L'historique rend la réponse conversationnelle : pas de cache.
        use_cache = cache is not None and not history
        text = cache.get(normalized, retrieval, scope=strategy.name) if use_cache else None
        cached = text is not None
        if not cached:
            prompt = strategy.build_prompt(TopicRequest(
                query=normalized,
                context=context,
                passages=passages,
                history=history,
                analysis=analysis,
                toolkit=toolkit,
            ))
            text = generator.generate(
                prompt,
                system_instructions=strategy.system_instructions,
                temperature=strategy.temperature,
            )
            if use_cache:
                cache.set(normalized, text, retrieval, scope=strategy.name)

        return AgentResponse(
            agent=strategy.name,
            response=text,
            confidence=compute_confidence(len(passages), analysis),
            metadata={
                "retrievedDocs": len(passages),
                "queryComplexity": analysis.complexity,
                "urgency": analysis.urgency,
                "cached": cached,
                "warnings": list(validation.warnings),
            },
        )
    except Exception as e:
        logger.error("Error in %s agent: %s", strategy.name, e, exc_info=True)
        return AgentResponse(
            agent=strategy.name,
            response=strategy.apology,
            confidence=0.0,
            metadata={"error": True},
        )


class TopicGenerator:
    """Générateur lié à ses dépendances ; `process` ne lève jamais."""

    def __init__(
        self,
        strategy: TopicStrategy,
        generator: TextGenerator,
        retriever: KnowledgeRetriever,
        toolkit: AgentToolkit,
        cache: Any = None,
    ):
        self.strategy = strategy
        self.generator = generator
        self.retriever = retriever
        self.toolkit = toolkit
        self.cache = cache

    @property
    def name(self) -> str:
        return self.strategy.name

    def process(
        self,
        query: str,
        context: UserContext,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> AgentResponse:
        return run_pipeline(
            self.strategy, self.generator, self.retriever, self.toolkit,
            query, context, history, cache=self.cache,
        )


__all__ = [
    "AgentToolkit",
    "TopicRequest",
    "TopicStrategy",
    "TopicGenerator",
    "compute_confidence",
    "run_pipeline",
    "retrieval_context",
    "INVALID_INPUT_REPLY",
]
