"""
Tests unitaires — services externes (météo, sol, marché, localisation) et LLM.

Sessions HTTP simulées : aucun appel réseau.
"""

from unittest.mock import MagicMock

import pytest
import requests
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from shambasmart.core.settings import Settings
from shambasmart.services.generation import AllBackendsFailed, TextGenerator, clean_response
from shambasmart.services.llm_clients import LLMBackend, build_backends
from shambasmart.services.location import LocationService, coordinates_for, nearest_county
from shambasmart.services.market import DEFAULT_PRICES_KES, MarketService, price_trend
from shambasmart.services.soil import SoilProperties, SoilService, format_soil, recommendations_for
from shambasmart.services.translator import Translator
from shambasmart.services.weather import WeatherService, condition_for, detect_alerts
from shambasmart.tools.knowledge_base import LocalDataSource


def _session(payload=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        response = MagicMock()
        response.json.return_value = payload
        session.get.return_value = response
    return session


class TestWeather:

    def test_alert_detection(self):
        kinds = {a.type: a.severity for a in detect_alerts([0.0] * 7, [36.0] * 7)}
        assert kinds == {"drought": "high", "heat": "medium"}
        flood = detect_alerts([120.0, 5, 5, 5, 5, 5, 5], [25.0] * 7)
        assert [(a.type, a.severity) for a in flood] == [("flood", "high")]
        assert detect_alerts([5.0] * 7, [28.0] * 7) == []

    def test_forecast_is_parsed(self):
        payload = {
            "current": {"temperature_2m": 22.5, "relative_humidity_2m": 70, "precipitation": 0.2, "weather_code": 61},
            "daily": {
                "time": ["2024-03-15", "2024-03-16"],
                "temperature_2m_max": [27.0, 26.0],
                "temperature_2m_min": [14.0, 13.5],
                "precipitation_sum": [4.0, None],
                "weather_code": [61, 3],
            },
        }
        service = WeatherService("https://weather.test", session=_session(payload))
        forecast = service.get_forecast("Nakuru")

        params = service.session.get.call_args[1]["params"]
        assert (params["latitude"], params["longitude"]) == (-0.3031, 36.08)
        assert forecast.temperature == 22.5
        assert forecast.condition == "Slight rain"
        assert forecast.days[1].precipitation == 0.0
        assert "2024-03-15: 14.0-27.0°C" in forecast.summary()

    def test_network_failure_gives_default_forecast(self):
        service = WeatherService("https://weather.test", session=_session(error=requests.ConnectionError()))
        forecast = service.get_forecast("Kisumu")
        assert forecast.location == "Kisumu"
        assert forecast.temperature == 25.0
        assert forecast.alerts == []

    def test_condition_codes(self):
        assert condition_for(95) == "Thunderstorm"
        assert condition_for(None) == "Unknown"
        assert condition_for(7) == "Unknown"


class TestLocation:

    def test_reverse_geocoding(self):
        service = LocationService("https://geo.test", "ShambaSmartAI/1.0",
                                  session=_session({"address": {"county": "Nakuru County"}}))
        assert service.county_from_coordinates(-0.3, 36.1) == "Nakuru"

    def test_fallback_to_nearest_centroid(self):
        service = LocationService("https://geo.test", "ShambaSmartAI/1.0",
                                  session=_session(error=requests.Timeout()))
        assert service.county_from_coordinates(-0.0917, 34.768) == "Kisumu"

    def test_nearest_county_outside_every_radius(self):
        assert nearest_county(-4.5, 39.7) == "Mombasa"

    def test_coordinates_for_towns_and_default(self):
        assert coordinates_for("Eldoret town") == (0.5143, 35.2698)
        assert coordinates_for("somewhere unknown") == (-1.2921, 36.8219)
        assert coordinates_for(None) == (-1.2921, 36.8219)


class TestSoil:

    def test_properties_are_scaled(self):
        payload = {"properties": {"layers": [{"name": "phh2o", "depths": [{"values": {"mean": 55}}]}]}}
        service = SoilService("https://soil.test", session=_session(payload))
        soil = service.get_properties("Nakuru")
        assert soil.ph == 5.5
        assert soil.organic_carbon is None

    def test_recommendations(self):
        soil = SoilProperties(location="Nakuru", ph=4.8, organic_carbon=25.0, bulk_density=1.7)
        statuses = {r.property: r.status for r in recommendations_for(soil)}
        assert statuses == {"pH": "critical", "Organic Carbon": "optimal", "Bulk Density": "critical"}
        assert "agricultural lime" in format_soil(soil)


class TestMarket:

    def test_defaults_without_api(self):
        prices = MarketService("").get_prices("maize", "Nakuru")
        assert prices[0].price == DEFAULT_PRICES_KES["maize"]

    def test_api_prices_with_trend(self):
        payload = [{"price": "48", "unit": "kg", "date": "2024-03-15", "market": "Wakulima",
                    "historical": [40, 40, 40, 50, 50, 50]}]
        prices = MarketService("https://market.test", session=_session(payload)).get_prices("maize", "Nairobi")
        assert prices[0].price == 48.0
        assert prices[0].trend == "up"
        assert prices[0].describe() == "maize in Nairobi at Wakulima: KES 48.0/kg (up, 2024-03-15)"

    def test_api_failure_uses_defaults(self):
        service = MarketService("https://market.test", session=_session(error=requests.ConnectionError()))
        assert service.get_prices("beans", "Kisumu")[0].price == DEFAULT_PRICES_KES["beans"]

    @pytest.mark.parametrize("history,trend", [
        ([], "stable"),
        ([10, 10, 10, 10, 10, 10], "stable"),
        ([60, 60, 60, 50, 50, 50], "down"),
    ])
    def test_price_trend(self, history, trend):
        assert price_trend(history) == trend


class TestTextGenerator:

    def test_falls_back_to_next_backend(self):
        def broken(temperature, max_tokens):
            raise RuntimeError("401 Unauthorized")

        generator = TextGenerator([
            LLMBackend("azure", broken),
            LLMBackend("groq", lambda t, m: FakeListChatModel(responses=["**Answer:** Plant early."])),
        ])
        assert generator.generate("When to plant?", system_instructions="You are a crop advisor.") == "Plant early."

    def test_empty_responses_are_skipped(self):
        generator = TextGenerator([
            LLMBackend("first", lambda t, m: FakeListChatModel(responses=["   "])),
            LLMBackend("second", lambda t, m: FakeListChatModel(responses=["ok"])),
        ])
        assert generator.generate("q") == "ok"

    def test_all_backends_failing_raises(self):
        with pytest.raises(AllBackendsFailed) as exc:
            TextGenerator([]).generate("q")
        assert exc.value.attempts == []

    def test_clean_response(self):
        assert clean_response("Question: how?\n\nAnswer: like this") == "like this"

    def test_build_backends_skips_unconfigured(self):
        cfg = Settings(_env_file=None, LLM_BACKENDS=["azure", "groq", "unknown"], GROQ_API_KEY="gsk-test",
                       AZURE_OPENAI_API_KEY="", AZURE_OPENAI_ENDPOINT="")
        assert [b.name for b in build_backends(cfg)] == ["groq"]


class TestTranslator:

    def test_same_language_is_untouched(self):
        generator = MagicMock()
        assert Translator(generator).translate("hello", "en", "en") == "hello"
        generator.generate.assert_not_called()

    def test_failure_returns_original(self):
        generator = MagicMock()
        generator.generate.side_effect = AllBackendsFailed(["groq: Timeout"])
        assert Translator(generator).translate("Plant early.", "en", "sw") == "Plant early."

    def test_prompt_names_languages(self):
        generator = MagicMock()
        generator.generate.return_value = "Panda mapema."
        assert Translator(generator, temperature=0.1).translate("Plant early.", "en", "sw") == "Panda mapema."
        prompt = generator.generate.call_args[0][0]
        assert "from English to Kiswahili" in prompt
        assert generator.generate.call_args[1]["temperature"] == 0.1


class TestLocalDataSource:

    def test_pest_search_by_crop(self):
        names = [p.name for p in LocalDataSource().search_pests("holes in leaves", crop="maize")]
        assert "Fall Armyworm" in names
        assert "Late Blight" not in names

    def test_livestock_search(self):
        names = [d.name for d in LocalDataSource().search_livestock_diseases("twisted neck", "chicken")]
        assert names == ["Newcastle Disease"]

    def test_calendar_lookup(self):
        local = LocalDataSource()
        assert local.planting_calendar("nakuru").county == "Nakuru"
        assert local.planting_calendar("atlantis") is None

    def test_search_all_order(self):
        passages = LocalDataSource().search_all(
            "when to plant maize and improve soil", crop="maize", region="Nakuru",
        )
        assert [p.split(":")[0] for p in passages] == ["PEST INFORMATION", "PLANTING CALENDAR", "SOIL MANAGEMENT"]
