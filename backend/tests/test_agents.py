"""
Tests unitaires — pipeline des générateurs thématiques.
"""

import time
from unittest.mock import MagicMock

import pytest
import requests

from conftest import DummyLLM, stub_toolkit
from shambasmart.agents import TOPIC_STRATEGIES
from shambasmart.agents.base import (
    INVALID_INPUT_REPLY,
    AgentToolkit,
    TopicRequest,
    TopicGenerator,
    compute_confidence,
    retrieval_context,
    run_pipeline,
)
from shambasmart.agents.climate import CLIMATE_STRATEGY
from shambasmart.agents.crop import CROP_STRATEGY
from shambasmart.agents.extension import build_extension_prompt, is_short_request
from shambasmart.agents.market import MARKET_STRATEGY
from shambasmart.agents.pest import PEST_STRATEGY
from shambasmart.orchestrator.state import UserContext
from shambasmart.services.entities import UserProfile
from shambasmart.services.market import MarketPrice
from shambasmart.services.retriever import KnowledgeRetriever, RetrievalContext
from shambasmart.tools.knowledge_base import LocalDataSource
from shambasmart.utils.query_analyzer import QueryAnalysis, analyze


@pytest.fixture
def toolkit():
    kit = stub_toolkit(AgentToolkit(local=LocalDataSource(), enrichment_timeout=0.5))
    yield kit
    kit.shutdown()


@pytest.fixture
def retriever():
    return KnowledgeRetriever(LocalDataSource())


@pytest.fixture
def context():
    user = UserProfile(id="u1", phone_number="+254700000001", county="Nakuru", livestock=["cattle"])
    return UserContext(user=user, crop="maize", region="nakuru")


class TestComputeConfidence:

    @pytest.mark.parametrize("analysis", [
        QueryAnalysis(complexity="simple"),
        QueryAnalysis(complexity="moderate"),
        QueryAnalysis(complexity="complex"),
        QueryAnalysis(complexity="moderate", keywords=("maize", "pest")),
    ])
    def test_more_passages_never_lowers_confidence(self, analysis):
        values = [compute_confidence(n, analysis) for n in range(8)]
        assert values == sorted(values)

    def test_base_values(self):
        moderate = QueryAnalysis(complexity="moderate")
        assert compute_confidence(0, moderate) == 0.3
        assert compute_confidence(1, moderate) == 0.5
        assert compute_confidence(3, moderate) == 0.8
        assert compute_confidence(5, moderate) == 0.9

    def test_simple_bonus_and_complex_penalty(self):
        assert compute_confidence(1, QueryAnalysis(complexity="simple")) == 0.6
        assert compute_confidence(1, QueryAnalysis(complexity="complex")) == 0.3
        assert compute_confidence(0, QueryAnalysis(complexity="simple")) == 0.3

    def test_keywords_are_capped(self):
        many = QueryAnalysis(complexity="moderate", keywords=("a", "b", "c", "d", "e"))
        assert compute_confidence(5, many) == 0.95
        assert compute_confidence(3, QueryAnalysis(keywords=("maize", "pest"))) == 0.9


class TestRetrievalContext:

    def test_profile_fills_gaps(self):
        user = UserProfile(id="u1", phone_number="+1", county="Kisumu", soil_type="clay", livestock=["goat"])
        result = retrieval_context(UserContext(user=user, crop="rice"))
        assert result == RetrievalContext(crop="rice", region="Kisumu", soil_type="clay", livestock="goat")


class TestRunPipeline:

    def test_invalid_input_skips_generation(self, retriever, toolkit, context):
        llm = DummyLLM()
        result = run_pipeline(CROP_STRATEGY, llm, retriever, toolkit, "   ", context)
        assert result["response"] == INVALID_INPUT_REPLY
        assert result["confidence"] == 0.0
        assert result["metadata"]["errors"] == ["Query is too short"]
        assert llm.prompts == []

    def test_successful_generation(self, retriever, toolkit, context):
        llm = DummyLLM(reply="Use certified seed.")
        result = run_pipeline(CROP_STRATEGY, llm, retriever, toolkit, "When do I plant maize in Nakuru?", context)
        assert result["agent"] == "crop"
        assert result["response"] == "Use certified seed."
        assert result["confidence"] > 0.3
        assert result["metadata"]["retrievedDocs"] >= 1
        assert result["metadata"]["cached"] is False
        assert "PLANTING CALENDAR FOR NAKURU" in llm.prompts[0]

    def test_generation_failure_returns_apology(self, retriever, toolkit, context):
        result = run_pipeline(CROP_STRATEGY, DummyLLM(fail=True), retriever, toolkit, "How to plant maize?", context)
        assert result["response"] == CROP_STRATEGY.apology
        assert result["confidence"] == 0.0
        assert result["metadata"] == {"error": True}

    def test_cache_is_used_without_history(self, retriever, toolkit, context, cache):
        llm = DummyLLM()
        generator = TopicGenerator(CROP_STRATEGY, llm, retriever, toolkit, cache=cache)
        first = generator.process("How do I plant maize?", context)
        second = generator.process("how do I   plant maize?", context)
        assert first["metadata"]["cached"] is False
        assert second["metadata"]["cached"] is True
        assert second["response"] == first["response"]
        assert len(llm.prompts) == 1

    def test_cache_is_scoped_per_topic(self, retriever, toolkit, context, cache):
        llm = DummyLLM()
        TopicGenerator(CROP_STRATEGY, llm, retriever, toolkit, cache=cache).process("maize stalk borer", context)
        pest = TopicGenerator(PEST_STRATEGY, llm, retriever, toolkit, cache=cache).process("maize stalk borer", context)
        assert pest["metadata"]["cached"] is False
        assert len(llm.prompts) == 2

    def test_history_bypasses_cache(self, retriever, toolkit, context, cache):
        llm = DummyLLM()
        generator = TopicGenerator(CROP_STRATEGY, llm, retriever, toolkit, cache=cache)
        history = [{"role": "user", "content": "I grow maize"}, {"role": "assistant", "content": "Great."}]
        generator.process("How do I plant it?", context, history)
        generator.process("How do I plant it?", context, history)
        assert len(llm.prompts) == 2
        assert len(cache) == 0
        assert "CONVERSATION CONTEXT" in llm.prompts[0]

    @pytest.mark.parametrize("strategy", TOPIC_STRATEGIES, ids=lambda s: s.name)
    def test_every_strategy_builds_a_prompt(self, strategy, retriever, toolkit, context):
        llm = DummyLLM(reply="ok")
        result = run_pipeline(strategy, llm, retriever, toolkit, "What should I do about my maize this season?", context)
        assert result["response"] == "ok"
        assert result["agent"] == strategy.name
        assert "What should I do about my maize this season?" in llm.prompts[0]


class TestEnrichment:

    def test_weather_data_reaches_the_prompt(self, retriever, toolkit, context):
        forecast = MagicMock()
        forecast.summary.return_value = "Current: 24°C, humidity 70%, Light rain"
        toolkit.weather.get_forecast.side_effect = None
        toolkit.weather.get_forecast.return_value = forecast
        llm = DummyLLM()
        run_pipeline(CLIMATE_STRATEGY, llm, retriever, toolkit, "Will it rain this week?", context)
        toolkit.weather.get_forecast.assert_called_once_with("nakuru")
        assert "Light rain" in llm.prompts[0]

    def test_weather_failure_does_not_fail_the_answer(self, retriever, toolkit, context):
        llm = DummyLLM(reply="Expect seasonal rains.")
        result = run_pipeline(CLIMATE_STRATEGY, llm, retriever, toolkit, "Will it rain this week?", context)
        assert result["response"] == "Expect seasonal rains."
        assert "Weather data not available" in llm.prompts[0]

    def test_market_prices_reach_the_prompt(self, retriever, toolkit, context):
        toolkit.market.get_prices.return_value = [
            MarketPrice(crop="maize", region="nakuru", price=45.0, date="2024-03-15", trend="up"),
        ]
        llm = DummyLLM()
        run_pipeline(MARKET_STRATEGY, llm, retriever, toolkit, "What is the maize price?", context)
        assert "KES 45.0/kg" in llm.prompts[0]

    def test_slow_enrichment_times_out(self, toolkit):
        toolkit.enrichment_timeout = 0.05
        assert toolkit.enrich("Slow", time.sleep, 0.5) is None

    def test_enrichment_errors_are_absorbed(self, toolkit):
        assert toolkit.enrich("Broken", MagicMock(side_effect=ValueError("bad"))) is None
        assert toolkit.enrich("Fine", lambda x: x * 2, 21) == 42


class TestKnowledgeRetriever:

    def test_local_results_come_first(self):
        external = MagicMock()
        external.search.return_value = ["External passage about maize"]
        retriever = KnowledgeRetriever(LocalDataSource(), external)
        passages = retriever.retrieve("maize stalk borer damage", RetrievalContext(crop="maize"))
        assert passages[-1] == "External passage about maize"
        assert passages[0].startswith("PEST INFORMATION")
        assert "crop: maize" in external.search.call_args[0][0]

    def test_external_failure_is_absorbed(self):
        external = MagicMock()
        external.search.side_effect = requests.ConnectionError("vector service down")
        retriever = KnowledgeRetriever(LocalDataSource(), external)
        passages = retriever.retrieve("maize stalk borer damage", RetrievalContext(crop="maize"))
        assert passages
        assert all("External" not in p for p in passages)

    def test_no_match_returns_general_data(self):
        retriever = KnowledgeRetriever(LocalDataSource())
        passages = retriever.retrieve("xyzzy")
        assert 1 <= len(passages) <= 3


class TestExtension:

    def test_short_request_detection(self):
        assert is_short_request("need help")
        assert not is_short_request("how do I contact an officer?")
        assert not is_short_request("explain extension services")

    def _prompt(self, query, analysis, context, toolkit):
        return build_extension_prompt(TopicRequest(
            query=query, context=context, passages=[], history=[], analysis=analysis, toolkit=toolkit,
        ))

    def test_prompt_follows_query_analysis(self, context, toolkit):
        analysis = QueryAnalysis(complexity="complex", type="question", estimated_response_length="long")
        prompt = self._prompt("Explain how cooperatives help farmers sell milk and access credit?",
                              analysis, context, toolkit)
        assert "QUERY ANALYSIS:" in prompt
        assert "- Complexity: complex" in prompt
        assert "Format your response with:" in prompt

    def test_short_request_is_answered_briefly(self, context, toolkit):
        prompt = self._prompt("need help", QueryAnalysis(complexity="moderate"), context, toolkit)
        assert "- Complexity: simple" in prompt
        assert "Recommended response length: short" in prompt
        assert "Format: Brief, friendly response" in prompt
