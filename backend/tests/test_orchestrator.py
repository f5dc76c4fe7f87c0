"""
Tests d'intégration — orchestrateur : routage, fan-out, fusion, traduction.
"""

import time
from types import SimpleNamespace

import pytest

from conftest import DEFAULT_ADVICE, DummyLLM
from shambasmart.agents import system_instructions
from shambasmart.orchestrator.intention import GREETING_REPLIES, Intent, IntentClassifier
from shambasmart.orchestrator.orchestrator import (
    ORCHESTRATOR_APOLOGY,
    AgentOrchestrator,
    merge_responses,
    route_topics,
)
from shambasmart.orchestrator.state import AgentResponse, UserContext
from shambasmart.services.entities import UserProfile
from shambasmart.services.translator import Translator


def _response(agent, text, confidence):
    return AgentResponse(agent=agent, response=text, confidence=confidence, metadata={})


class FakeGenerator:
    def __init__(self, name, text, confidence=0.8, delay=0.0):
        self.name = name
        self.text = text
        self.confidence = confidence
        self.delay = delay
        self.calls = []
        self.strategy = SimpleNamespace(name=name, apology=f"Sorry, {name} is unavailable.")

    def process(self, query, context, history=None):
        self.calls.append(query)
        if self.delay:
            time.sleep(self.delay)
        return _response(self.name, self.text, self.confidence)


@pytest.fixture
def context():
    return UserContext(user=UserProfile(id="u1", phone_number="+254700000001"))


class TestMergeAndRoute:

    def test_primary_is_kept_even_at_zero_confidence(self):
        merged = merge_responses([
            _response("pest", "primary", 0.0),
            _response("crop", "weak", 0.5),
            _response("market", "strong", 0.6),
        ])
        assert merged == "primary\n\nstrong"

    def test_single_and_empty(self):
        assert merge_responses([_response("crop", "only", 0.1)]) == "only"
        assert merge_responses([]) == "I could not find relevant information."

    def test_route_topics(self):
        assert route_topics([Intent.WEATHER, Intent.CROP]) == ["climate", "crop"]
        assert route_topics([Intent.GENERAL]) == ["crop"]
        assert route_topics([Intent.PEST, Intent.PEST]) == ["pest"]


class TestDispatch:

    def test_single_topic_runs_only_that_generator(self, context):
        crop, pest = FakeGenerator("crop", "crop advice"), FakeGenerator("pest", "pest advice")
        orchestrator = AgentOrchestrator(IntentClassifier(), {"crop": crop, "pest": pest})
        assert orchestrator.process_query("I need advice on growing maize", context) == "crop advice"
        assert pest.calls == []
        orchestrator.shutdown()

    def test_fan_out_keeps_primary_order(self, context):
        crop = FakeGenerator("crop", "crop advice", delay=0.05)
        pest = FakeGenerator("pest", "pest advice")
        orchestrator = AgentOrchestrator(IntentClassifier(), {"crop": crop, "pest": pest})
        reply = orchestrator.process_query("my maize leaves have holes", context)
        assert reply == "pest advice\n\ncrop advice"
        orchestrator.shutdown()

    def test_slow_generator_times_out_with_its_apology(self, context):
        crop = FakeGenerator("crop", "crop advice", delay=0.5)
        pest = FakeGenerator("pest", "pest advice")
        orchestrator = AgentOrchestrator(IntentClassifier(), {"crop": crop, "pest": pest}, generator_timeout=0.1)

        responses = orchestrator.dispatch("my maize leaves have holes", context, [], (Intent.PEST, Intent.CROP))
        assert responses[0]["response"] == "pest advice"
        assert responses[1]["response"] == "Sorry, crop is unavailable."
        assert responses[1]["confidence"] == 0.0
        assert responses[1]["metadata"] == {"error": True, "timeout": True}
        orchestrator.shutdown()

    def test_slow_generators_share_one_deadline(self, context):
        generators = {
            name: FakeGenerator(name, f"{name} advice", delay=0.6) for name in ("pest", "crop", "market")
        }
        orchestrator = AgentOrchestrator(IntentClassifier(), generators, generator_timeout=0.2)

        started = time.monotonic()
        responses = orchestrator.dispatch("q", context, [], (Intent.PEST, Intent.CROP, Intent.MARKET))
        elapsed = time.monotonic() - started

        assert elapsed < 0.5
        assert all(r["metadata"].get("timeout") for r in responses)
        orchestrator.shutdown()

    def test_raising_generator_keeps_sibling_responses(self, context):
        crop = FakeGenerator("crop", "crop advice")
        crop.process = lambda *args, **kwargs: (_ for _ in ()).throw(RuntimeError("boom"))
        market = FakeGenerator("market", "market advice")
        orchestrator = AgentOrchestrator(IntentClassifier(), {"crop": crop, "market": market})

        responses = orchestrator.dispatch("maize price", context, [], (Intent.CROP, Intent.MARKET))
        assert [r["agent"] for r in responses] == ["crop", "market"]
        assert responses[0]["response"] == "Sorry, crop is unavailable."
        assert responses[0]["metadata"] == {"error": True, "errorType": "RuntimeError"}
        assert responses[1]["response"] == "market advice"
        orchestrator.shutdown()

    def test_errors_become_the_fixed_apology(self, context):
        classifier = IntentClassifier()
        classifier.classify = lambda *args, **kwargs: (_ for _ in ()).throw(RuntimeError("boom"))
        orchestrator = AgentOrchestrator(classifier, {"crop": FakeGenerator("crop", "x")})
        assert orchestrator.process_query("how to plant maize", context) == ORCHESTRATOR_APOLOGY
        orchestrator.shutdown()


class TestLanguages:

    def test_greeting_is_answered_without_generation(self, context):
        llm = DummyLLM()
        crop = FakeGenerator("crop", "x")
        orchestrator = AgentOrchestrator(IntentClassifier(llm), {"crop": crop}, Translator(llm))
        assert orchestrator.process_query("habari", context, language="sw") == GREETING_REPLIES["sw"]["first"]
        assert llm.prompts == []
        assert crop.calls == []
        orchestrator.shutdown()

    def test_other_languages_translate_the_english_greeting(self, context):
        llm = DummyLLM()
        orchestrator = AgentOrchestrator(IntentClassifier(llm), {}, Translator(llm))
        assert orchestrator.process_query("hello", context, language="fr") == \
            "[fr] " + GREETING_REPLIES["en"]["first"]
        orchestrator.shutdown()

    def test_query_goes_through_the_pivot_language(self, context):
        llm = DummyLLM(translations={"Ninapandaje mahindi?": "How do I plant maize?"})
        crop = FakeGenerator("crop", "Plant after the first rains.")
        orchestrator = AgentOrchestrator(IntentClassifier(llm), {"crop": crop}, Translator(llm))

        reply = orchestrator.process_query("Ninapandaje mahindi?", context, language="sw")
        assert crop.calls == ["How do I plant maize?"]
        assert reply == "[Kiswahili] Plant after the first rains."
        orchestrator.shutdown()

    def test_translation_failure_keeps_the_text(self, context):
        llm = DummyLLM(fail=True)
        crop = FakeGenerator("crop", "Plant after the first rains.")
        orchestrator = AgentOrchestrator(IntentClassifier(llm), {"crop": crop}, Translator(llm))
        assert orchestrator.process_query("kupanda mahindi", context, language="sw") == "Plant after the first rains."
        orchestrator.shutdown()


class TestEndToEnd:
    """Parcours complets à travers le conteneur (web → conversation → orchestrateur)."""

    def test_crop_question_routes_to_crop_only(self, container, llm, store):
        reply = container.web.chat("+254700000001", "I need advice on growing maize")
        assert reply == DEFAULT_ADVICE
        prompts = llm.topic_prompts()
        assert len(prompts) == 1
        assert "FARMER CONTEXT" in prompts[0] and "Crop: maize" in prompts[0]

        user = store.get_user("+254700000001")
        assert user.crops == ["maize"]
        assert [m.direction for m in store.get_messages(user.id)] == ["outbound", "inbound"]

    def test_symptom_question_fans_out_to_pest_then_crop(self, container, llm):
        llm.replies = {
            system_instructions.PEST_DETECTION: "Likely fall armyworm: spray neem early morning.",
            system_instructions.CROP_ADVISOR: "Keep the maize field weeded.",
        }
        reply = container.web.chat("+254700000002", "my maize leaves have holes")
        assert reply.startswith("Likely fall armyworm: spray neem early morning.")
        assert reply.endswith("Keep the maize field weeded.")

    def test_kiswahili_question_is_answered_in_kiswahili(self, container, llm):
        llm.translations = {"Nawezaje kupanda mahindi?": "How do I plant maize?"}
        reply = container.web.chat("+254700000003", "Nawezaje kupanda mahindi?", language="sw")
        assert reply == f"[Kiswahili] {DEFAULT_ADVICE}"
        assert any('"How do I plant maize?"' in p for p in llm.topic_prompts())

    def test_greeting_then_continuation(self, container, llm):
        first = container.web.chat("+254700000004", "hello")
        second = container.web.chat("+254700000004", "hello")
        assert first == GREETING_REPLIES["en"]["first"]
        assert second == GREETING_REPLIES["en"]["continuation"]
        assert llm.prompts == []

    def test_total_generation_outage_still_answers(self, container, llm):
        llm.fail = True
        reply = container.web.chat("+254700000005", "How do I plant maize?")
        assert "error processing your crop question" in reply
