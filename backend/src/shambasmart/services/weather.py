"""
Météo — prévisions Open-Meteo à 7 jours + détection d'alertes.

Seuils d'alerte (sur les 7 jours) :
  - sécheresse : précipitations moyennes < 1 mm/j (élevée si < 0.5)
  - chaleur    : max > 35 °C (élevée si > 38)
  - inondation : max journalier > 50 mm (élevée si > 100)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from shambasmart.services.location import coordinates_for

logger = logging.getLogger("ShambaSmart.Weather")

# Codes météo WMO
WMO_CONDITIONS = {
    0: "Clear sky", 1: "Mainly clear", 2: "Partly cloudy", 3: "Overcast",
    45: "Foggy", 48: "Depositing rime fog",
    51: "Light drizzle", 53: "Moderate drizzle", 55: "Dense drizzle",
    61: "Slight rain", 63: "Moderate rain", 65: "Heavy rain",
    71: "Slight snow", 73: "Moderate snow", 75: "Heavy snow",
    80: "Slight rain showers", 81: "Moderate rain showers", 82: "Violent rain showers",
    95: "Thunderstorm", 96: "Thunderstorm with slight hail", 99: "Thunderstorm with heavy hail",
}


@dataclass
class WeatherAlert:
    type: str        # drought | heat | flood
    severity: str    # medium | high
    message: str


@dataclass
class DailyForecast:
    date: str
    temp_min: float
    temp_max: float
    precipitation: float
    condition: str


@dataclass
class WeatherForecast:
    location: str
    temperature: float = 25.0
    humidity: float = 60.0
    precipitation: float = 0.0
    condition: str = "Partly cloudy"
    days: List[DailyForecast] = field(default_factory=list)
    alerts: List[WeatherAlert] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            f"Location: {self.location}",
            f"Current: {self.temperature}°C, humidity {self.humidity}%, {self.condition}",
        ]
        for day in self.days:
            lines.append(
                f"{day.date}: {day.temp_min}-{day.temp_max}°C, rain {day.precipitation} mm, {day.condition}"
            )
        for alert in self.alerts:
            lines.append(f"ALERT ({alert.type}, {alert.severity}): {alert.message}")
        return "\n".join(lines)


def condition_for(code: Any) -> str:
    try:
        return WMO_CONDITIONS.get(int(code), "Unknown")
    except (TypeError, ValueError):
        return "Unknown"


def detect_alerts(daily_precipitation: List[float], daily_max_temp: List[float]) -> List[WeatherAlert]:
    alerts: List[WeatherAlert] = []
    rain = [p or 0.0 for p in daily_precipitation[:7]]
    temps = [t for t in daily_max_temp[:7] if t is not None]

    if rain:
        average = sum(rain) / 7
        if average < 1:
            alerts.append(WeatherAlert(
                "drought", "high" if average < 0.5 else "medium",
                "Low rainfall expected. Consider water conservation measures.",
            ))
    if temps:
        hottest = max(temps)
        if hottest > 35:
            alerts.append(WeatherAlert(
                "heat", "high" if hottest > 38 else "medium",
                "High temperatures expected. Protect crops and livestock from heat stress.",
            ))
    if rain:
        wettest = max(rain)
        if wettest > 50:
            alerts.append(WeatherAlert(
                "flood", "high" if wettest > 100 else "medium",
                "Heavy rainfall expected. Take flood prevention measures.",
            ))
    return alerts


class WeatherService:
    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_forecast(self, location: str) -> WeatherForecast:
        """Prévision 7 jours. Toute erreur → prévision par défaut (25 °C, partiellement nuageux)."""
        lat, lon = coordinates_for(location)
        try:
            response = self.session.get(
                self.url,
                params={
                    "latitude": lat,
                    "longitude": lon,
                    "current": "temperature_2m,relative_humidity_2m,precipitation,weather_code",
                    "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum,weather_code",
                    "timezone": "Africa/Nairobi",
                    "forecast_days": 7,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return self._parse(location, response.json())
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.error("Error fetching weather forecast for %s: %s", location, e)
            return WeatherForecast(location=location)

    @staticmethod
    def _parse(location: str, data: Dict[str, Any]) -> WeatherForecast:
        current = data.get("current", {})
        daily = data.get("daily", {})
        dates = daily.get("time", [])
        rain = daily.get("precipitation_sum", [])
        t_max = daily.get("temperature_2m_max", [])
        t_min = daily.get("temperature_2m_min", [])
        codes = daily.get("weather_code", [])

        days = [
            DailyForecast(
                date=date,
                temp_min=t_min[i],
                temp_max=t_max[i],
                precipitation=rain[i] or 0.0,
                condition=condition_for(codes[i] if i < len(codes) else None),
            )
            for i, date in enumerate(dates)
        ]
        return WeatherForecast(
            location=location,
            temperature=current.get("temperature_2m", 25.0),
            humidity=current.get("relative_humidity_2m", 60.0),
            precipitation=current.get("precipitation") or 0.0,
            condition=condition_for(current.get("weather_code")),
            days=days,
            alerts=detect_alerts(rain, t_max),
        )


__all__ = ["WeatherService", "WeatherForecast", "WeatherAlert", "detect_alerts", "condition_for"]
