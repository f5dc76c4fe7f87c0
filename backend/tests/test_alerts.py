"""
Tests unitaires — alertes proactives et planificateur.
"""

from unittest.mock import MagicMock

import pytest

from shambasmart.services.alerts import PEST_OUTBREAKS, AlertService, grows_any
from shambasmart.services.entities import Alert, UserProfile
from shambasmart.services.market import MarketPrice
from shambasmart.services.scheduling.scheduler import run_alert_cycle, run_cache_sweep, start_scheduler, stop_scheduler
from shambasmart.services.weather import WeatherAlert, WeatherForecast


def _channel(name, ok=True):
    channel = MagicMock()
    channel.name = name
    channel.send_message.return_value = ok
    return channel


@pytest.fixture
def weather():
    service = MagicMock()
    service.get_forecast.return_value = WeatherForecast(location="x")
    return service


@pytest.fixture
def market():
    service = MagicMock()
    service.get_prices.return_value = []
    return service


class TestDelivery:

    def test_whatsapp_first(self, store, weather, market):
        whatsapp, sms = _channel("whatsapp"), _channel("sms")
        service = AlertService(store, weather, market, [whatsapp, sms])
        user = store.create_user("+254700000001")

        assert service.send_alert(user, Alert(type="pest", severity="high", title="T", message="M")) == 1
        whatsapp.send_message.assert_called_once_with("+254700000001", "T\n\nM")
        sms.send_message.assert_not_called()
        assert store.alerts[0].user_id == user.id

    def test_sms_fallback(self, store, weather, market):
        whatsapp, sms = _channel("whatsapp", ok=False), _channel("sms")
        whatsapp.send_message.side_effect = RuntimeError("63016 outside session window")
        service = AlertService(store, weather, market, [whatsapp, sms])
        user = store.create_user("+254700000001")

        assert service.send_alert(user, Alert(type="pest", severity="high", title="T", message="M")) == 1
        sms.send_message.assert_called_once()

    def test_all_channels_failing_counts_zero(self, store, weather, market):
        service = AlertService(store, weather, market, [_channel("whatsapp", False), _channel("sms", False)])
        user = store.create_user("+254700000001")
        assert service.send_alert(user, Alert(type="pest", severity="high", title="T", message="M")) == 0
        assert len(store.alerts) == 1


class TestChecks:

    def test_pest_alerts_target_growers(self, store, weather, market):
        store.create_user("+254700000001", crops=["Maize"])
        store.create_user("+254700000002", crops=["tomatoes"])
        store.create_user("+254700000003", crops=["coffee"])
        whatsapp = _channel("whatsapp")
        service = AlertService(store, weather, market, [whatsapp])

        assert service.check_pest_alerts() == 2
        titles = sorted(a.title for a in store.alerts)
        assert titles == ["Fall Armyworm Alert", "Tuta absoluta Alert"]

    def test_weather_alerts_by_region(self, store, weather, market):
        store.create_user("+254700000001", county="Machakos")
        store.create_user("+254700000002", county="Machakos")
        weather.get_forecast.return_value = WeatherForecast(
            location="Machakos",
            alerts=[WeatherAlert("drought", "high", "Low rainfall expected.")],
        )
        service = AlertService(store, weather, market, [_channel("sms")])

        assert service.check_weather_alerts() == 2
        weather.get_forecast.assert_called_once_with("Machakos")
        assert store.alerts[0].title == "Weather Alert: Machakos"

    @pytest.mark.parametrize("previous,current,expected", [
        (50.0, 62.0, ("increased", "medium")),
        (50.0, 30.0, ("decreased", "high")),
        (50.0, 55.0, None),
    ])
    def test_market_alert_threshold(self, store, weather, market, previous, current, expected):
        market.get_prices.return_value = [
            MarketPrice(crop="maize", region="Nakuru", price=current, date="2024-03-15"),
            MarketPrice(crop="maize", region="Nakuru", price=previous, date="2024-03-08"),
        ]
        service = AlertService(store, weather, market, [])
        alert = service._market_alert("maize", "Nakuru")
        if expected is None:
            assert alert is None
        else:
            direction, severity = expected
            assert alert.severity == severity
            assert f"maize prices have {direction} by" in alert.message
            assert f"Current price: KES {current}/kg" in alert.message

    def test_one_failing_check_does_not_stop_the_cycle(self, store, weather, market):
        store.create_user("+254700000001", crops=["maize"], county="Nakuru")
        weather.get_forecast.side_effect = RuntimeError("open-meteo down")
        market.get_prices.side_effect = RuntimeError("market api down")
        service = AlertService(store, weather, market, [_channel("whatsapp")])
        def broken():
            raise RuntimeError("unexpected")
        service.check_weather_alerts = broken

        assert service.check_and_send() == 1
        assert store.alerts[0].title == "Fall Armyworm Alert"

    def test_grows_any(self):
        user = UserProfile(id="u1", phone_number="+1", crops=["Tomatoes"])
        assert grows_any(user, ("tomato",))
        assert not grows_any(user, ("maize",))
        assert PEST_OUTBREAKS[0].crops == ("maize", "sorghum")


class TestScheduler:

    def test_jobs_are_registered(self):
        scheduler = start_scheduler(cache=MagicMock(), alert_service=MagicMock(), run_alerts_now=False)
        try:
            assert {job.id for job in scheduler.get_jobs()} == {"cache_sweep", "alert_cycle"}
        finally:
            stop_scheduler(scheduler)
        assert not scheduler.running

    def test_alerts_are_optional(self):
        scheduler = start_scheduler(cache=MagicMock(), alert_service=None)
        try:
            assert [job.id for job in scheduler.get_jobs()] == ["cache_sweep"]
        finally:
            stop_scheduler(scheduler)

    def test_job_failures_are_logged_not_raised(self):
        cache = MagicMock()
        cache.clear_expired.side_effect = RuntimeError("boom")
        run_cache_sweep(cache)
        alerts = MagicMock()
        alerts.check_and_send.side_effect = RuntimeError("boom")
        run_alert_cycle(alerts)
