"""
ServiceContainer — assemblage explicite des services, construit une fois.

Les routes reçoivent le conteneur via FastAPI Depends(get_container) ;
les tests le remplacent par `app.dependency_overrides[get_container]`.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException

from shambasmart.agents import TOPIC_STRATEGIES, AgentToolkit, TopicGenerator
from shambasmart.channels import (
    ConversationService,
    SMSChannel,
    TwilioGateway,
    USSDChannel,
    VoiceChannel,
    WebChannel,
    WhatsAppChannel,
)
from shambasmart.core.database import get_session_factory
from shambasmart.core.settings import Settings, settings as default_settings
from shambasmart.orchestrator.intention import IntentClassifier
from shambasmart.orchestrator.orchestrator import AgentOrchestrator
from shambasmart.services.alerts import AlertService
from shambasmart.services.generation import TextGenerator
from shambasmart.services.history_store import HistoryStore, build_history_store
from shambasmart.services.llm_clients import build_backends
from shambasmart.services.location import LocationService
from shambasmart.services.market import MarketService
from shambasmart.services.retriever import KnowledgeRetriever, VectorSearchClient
from shambasmart.services.soil import SoilService
from shambasmart.services.translator import Translator
from shambasmart.services.utils.redis_cache import build_response_cache
from shambasmart.services.weather import WeatherService
from shambasmart.tools.knowledge_base import LocalDataSource

logger = logging.getLogger("ShambaSmart.API")


@dataclass
class ServiceContainer:
    store: HistoryStore
    cache: Any
    orchestrator: AgentOrchestrator
    conversation: ConversationService
    toolkit: AgentToolkit
    sms: SMSChannel
    whatsapp: WhatsAppChannel
    ussd: USSDChannel
    voice: VoiceChannel
    web: WebChannel
    alerts: AlertService

    def cache_backend(self) -> str:
        return getattr(self.cache, "backend", "memory")

    def close(self) -> None:
        self.orchestrator.shutdown()
        self.toolkit.shutdown()
        close = getattr(self.cache, "close", None)
        if close is not None:
            close()


def build_container(
    cfg: Optional[Settings] = None,
    store: Optional[HistoryStore] = None,
    text_generator: Optional[TextGenerator] = None,
    cache: Any = None,
    gateway: Optional[TwilioGateway] = None,
    location: Optional[LocationService] = None,
) -> ServiceContainer:
    """Construit tous les services depuis la configuration ; chaque argument peut être injecté."""
    cfg = cfg or default_settings

    store = store or build_history_store(get_session_factory())
    if cache is None:
        cache = build_response_cache(
            cfg.REDIS_URL, cfg.CACHE_MAX_SIZE, cfg.CACHE_FALLBACK_MAX_SIZE, cfg.CACHE_TTL_SECONDS,
        )
    text_generator = text_generator or TextGenerator(
        build_backends(cfg),
        default_temperature=cfg.LLM_TEMPERATURE,
        default_max_tokens=cfg.LLM_MAX_TOKENS,
    )

    # ── Connaissances et enrichissements ──
    local = LocalDataSource()
    external = None
    if cfg.USE_VECTOR_SEARCH and cfg.VECTOR_SEARCH_URL:
        external = VectorSearchClient(
            cfg.VECTOR_SEARCH_URL, timeout=cfg.VECTOR_SEARCH_TIMEOUT, top_k=cfg.VECTOR_SEARCH_TOP_K,
        )
    retriever = KnowledgeRetriever(local, external)
    weather = WeatherService(cfg.OPEN_METEO_URL)
    market = MarketService(cfg.MARKET_API_URL)
    toolkit = AgentToolkit(
        local=local,
        weather=weather,
        soil=SoilService(cfg.SOILGRIDS_URL),
        market=market,
        enrichment_timeout=cfg.ENRICHMENT_TIMEOUT,
    )

    # ── Orchestration ──
    generators: Dict[str, TopicGenerator] = {
        strategy.name: TopicGenerator(strategy, text_generator, retriever, toolkit, cache=cache)
        for strategy in TOPIC_STRATEGIES
    }
    orchestrator = AgentOrchestrator(
        classifier=IntentClassifier(
            text_generator, temperature=cfg.CLASSIFIER_TEMPERATURE, max_topics=cfg.MAX_TOPICS,
        ),
        generators=generators,
        translator=Translator(text_generator, temperature=cfg.TRANSLATION_TEMPERATURE),
        generator_timeout=cfg.GENERATOR_TIMEOUT,
    )
    conversation = ConversationService(store, orchestrator, history_window=cfg.HISTORY_WINDOW)

    # ── Canaux ──
    gateway = gateway or TwilioGateway(
        cfg.TWILIO_ACCOUNT_SID, cfg.TWILIO_AUTH_TOKEN, cfg.TWILIO_SMS_NUMBER, cfg.TWILIO_WHATSAPP_NUMBER,
    )
    if not gateway.configured:
        logger.warning("⚠️ Twilio credentials missing: SMS/WhatsApp replies will not be pushed.")
    location = location or LocationService(cfg.NOMINATIM_URL, cfg.HTTP_USER_AGENT)
    sms = SMSChannel(conversation, gateway)
    whatsapp = WhatsAppChannel(conversation, gateway, cfg.WHATSAPP_VERIFY_TOKEN)

    return ServiceContainer(
        store=store,
        cache=cache,
        orchestrator=orchestrator,
        conversation=conversation,
        toolkit=toolkit,
        sms=sms,
        whatsapp=whatsapp,
        ussd=USSDChannel(conversation),
        voice=VoiceChannel(conversation),
        web=WebChannel(conversation, store, location),
        # WhatsApp d'abord, SMS en repli
        alerts=AlertService(store, weather, market, channels=[whatsapp, sms]),
    )


# ── Dependency : Container (lazy singleton, thread-safe) ──

_container_instance: Optional[ServiceContainer] = None
_container_lock = threading.Lock()


def _get_container() -> Optional[ServiceContainer]:
    """Instancié une seule fois, au premier appel — thread-safe, retryable."""
    global _container_instance
    if _container_instance is not None:
        return _container_instance

    with _container_lock:
        if _container_instance is not None:
            return _container_instance
        try:
            _container_instance = build_container()
            logger.info("Service container loaded successfully.")
            return _container_instance
        except Exception as e:
            logger.warning("Failed to build service container: %s", e, exc_info=True)
            # Ne pas mettre None en cache : le prochain appel réessaie
            return None


def get_container() -> ServiceContainer:
    """FastAPI dependency — retourne le singleton ou lève 503."""
    container = _get_container()
    if container is None:
        raise HTTPException(status_code=503, detail="Services unavailable. Retrying on next request.")
    return container


def peek_container() -> Optional[ServiceContainer]:
    """Conteneur déjà construit, sans le créer."""
    return _container_instance


def reset_container() -> None:
    global _container_instance
    with _container_lock:
        if _container_instance is not None:
            _container_instance.close()
        _container_instance = None


__all__ = [
    "ServiceContainer",
    "build_container",
    "get_container",
    "peek_container",
    "reset_container",
]
