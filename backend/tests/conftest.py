"""
Fixtures partagées — LLM factice, store en mémoire, conteneur de services.

Aucun appel réseau : les services d'enrichissement sont des MagicMock et
le client Twilio est simulé.
"""

import re
from unittest.mock import MagicMock

import pytest

from shambasmart.core.rate_limit import chat_limiter, general_limiter, location_limiter, webhook_limiter
from shambasmart.core.settings import Settings
from shambasmart.services.generation import AllBackendsFailed
from shambasmart.services.history_store import InMemoryHistoryStore
from shambasmart.services.utils.cache import ResponseCache

DEFAULT_ADVICE = "Plant maize at the onset of the long rains, spacing 75cm by 25cm."

_TRANSLATION = re.compile(r"from (?P<source>\w+) to (?P<target>\w+)\..*?Text to translate:\n(?P<text>.*)\n\nTranslation:", re.DOTALL)


class DummyLLM:
    """
    Remplace TextGenerator.generate.

    - prompt du classifieur → `category` (None = sortie inexploitable)
    - prompt de traduction  → `translations[texte]` sinon « [Cible] texte »
    - sinon                 → `replies[system_instructions]` sinon `reply`
    """

    def __init__(self, reply=DEFAULT_ADVICE, category=None, replies=None, translations=None, fail=False):
        self.reply = reply
        self.category = category
        self.replies = replies or {}
        self.translations = translations or {}
        self.fail = fail
        self.prompts = []

    def generate(self, prompt, system_instructions=None, temperature=None, max_tokens=None):
        self.prompts.append(prompt)
        if self.fail:
            raise AllBackendsFailed(["dummy: ConnectionError"])
        if prompt.startswith("You are an intelligent intent classifier"):
            return self.category or "I am not sure"
        match = _TRANSLATION.search(prompt)
        if match:
            text = match.group("text")
            return self.translations.get(text, f"[{match.group('target')}] {text}")
        return self.replies.get(system_instructions, self.reply)

    def topic_prompts(self):
        return [
            p for p in self.prompts
            if not p.startswith("You are an intelligent intent classifier") and not _TRANSLATION.search(p)
        ]


def stub_toolkit(toolkit):
    """Services d'enrichissement sans réseau."""
    toolkit.weather = MagicMock()
    toolkit.weather.get_forecast.side_effect = RuntimeError("offline")
    toolkit.soil = MagicMock()
    toolkit.soil.get_properties.side_effect = RuntimeError("offline")
    toolkit.market = MagicMock()
    toolkit.market.get_prices.return_value = []
    return toolkit


@pytest.fixture
def llm():
    return DummyLLM()


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def cache():
    return ResponseCache(max_size=50, ttl_seconds=3600)


@pytest.fixture
def twilio_client():
    client = MagicMock()
    client.messages.create.return_value = MagicMock(sid="SM123")
    return client


@pytest.fixture
def location_service():
    location = MagicMock()
    location.county_from_coordinates.return_value = "Nakuru"
    return location


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="",
        REDIS_URL="",
        TWILIO_SMS_NUMBER="+15550001111",
        TWILIO_WHATSAPP_NUMBER="+15550002222",
        WHATSAPP_VERIFY_TOKEN="verify-me",
        ENRICHMENT_TIMEOUT=1.0,
        GENERATOR_TIMEOUT=5.0,
    )


@pytest.fixture
def container(test_settings, store, llm, cache, twilio_client, location_service):
    from shambasmart.api.dependencies import build_container
    from shambasmart.channels.twilio_gateway import TwilioGateway

    gateway = TwilioGateway(
        sms_number=test_settings.TWILIO_SMS_NUMBER,
        whatsapp_number=test_settings.TWILIO_WHATSAPP_NUMBER,
        client=twilio_client,
    )
    built = build_container(
        cfg=test_settings,
        store=store,
        text_generator=llm,
        cache=cache,
        gateway=gateway,
        location=location_service,
    )
    stub_toolkit(built.toolkit)
    yield built
    built.close()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    for limiter in (general_limiter, chat_limiter, webhook_limiter, location_limiter):
        limiter.reset()
    yield
    for limiter in (general_limiter, chat_limiter, webhook_limiter, location_limiter):
        limiter.reset()
