"""
Agent Alertes — détection et diffusion proactive.

Trois sources, vérifiées indépendamment :
  1. Météo : alertes Open-Meteo par région distincte des utilisateurs
  2. Ravageurs : foyers connus, pour les cultivateurs des cultures touchées
  3. Marché : variation de prix ≥ 20 % (élevée si ≥ 30 %)

Diffusion : enregistrement, puis WhatsApp avec repli SMS. L'échec pour un
utilisateur n'interrompt jamais le lot.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from shambasmart.services.entities import Alert, UserProfile
from shambasmart.services.history_store import HistoryStore
from shambasmart.services.market import MarketService
from shambasmart.services.weather import WeatherService

logger = logging.getLogger("ShambaSmart.Alerts")

MARKET_ALERT_THRESHOLD = 20.0
MARKET_HIGH_THRESHOLD = 30.0


class PushChannel(Protocol):
    name: str

    def send_message(self, identity: str, text: str) -> bool:
        ...


@dataclass(frozen=True)
class PestOutbreak:
    pest: str
    crops: Tuple[str, ...]
    regions: Tuple[str, ...]      # vide = toutes les régions
    severity: str
    message: str


PEST_OUTBREAKS: List[PestOutbreak] = [
    PestOutbreak(
        pest="Fall Armyworm",
        crops=("maize", "sorghum"),
        regions=(),
        severity="high",
        message=("Fall Armyworm outbreak detected. Monitor your maize fields closely "
                 "and apply control measures immediately."),
    ),
    PestOutbreak(
        pest="Tuta absoluta",
        crops=("tomato",),
        regions=(),
        severity="high",
        message=("Tuta absoluta (tomato leaf miner) outbreak detected. Check your tomato "
                 "plants and apply appropriate pesticides."),
    ),
]


def grows_any(user: UserProfile, crops: Sequence[str]) -> bool:
    """« tomato » couvre « tomatoes »."""
    grown = [c.lower() for c in user.crops]
    return any(g.startswith(c) or c.startswith(g) for g in grown for c in crops if g)


class AlertService:
    def __init__(
        self,
        store: HistoryStore,
        weather: WeatherService,
        market: MarketService,
        channels: Sequence[PushChannel],
        outbreaks: Sequence[PestOutbreak] = tuple(PEST_OUTBREAKS),
    ):
        self.store = store
        self.weather = weather
        self.market = market
        self.channels = list(channels)
        self.outbreaks = list(outbreaks)

    # ── Cycle ───────────────────────────────────────────────

    def check_and_send(self) -> int:
        """Un cycle complet ; renvoie le nombre d'alertes délivrées."""
        logger.info("📡 Starting alert cycle")
        sent = 0
        for check in (self.check_weather_alerts, self.check_pest_alerts, self.check_market_alerts):
            try:
                sent += check()
            except Exception as e:
                logger.error("❌ %s failed: %s", check.__name__, e, exc_info=True)
        logger.info("✅ Alert cycle finished: %d alert(s) delivered", sent)
        return sent

    def check_weather_alerts(self) -> int:
        sent = 0
        for region in self.store.get_unique_regions():
            try:
                forecast = self.weather.get_forecast(region)
            except Exception as e:
                logger.warning("Failed to check weather for region %s: %s", region, e)
                continue
            if not forecast.alerts:
                continue
            users = self.store.get_users_by_region(region)
            for user in users:
                for weather_alert in forecast.alerts:
                    sent += self.send_alert(user, Alert(
                        type="weather",
                        severity=weather_alert.severity,
                        title=f"Weather Alert: {region}",
                        message=weather_alert.message,
                        region=region,
                    ))
            logger.info("Weather: %d alert(s) for %d user(s) in %s", len(forecast.alerts), len(users), region)
        return sent

    def check_pest_alerts(self) -> int:
        sent = 0
        users = self.store.get_users_with_crops()
        for outbreak in self.outbreaks:
            regions = [r.lower() for r in outbreak.regions]
            for user in users:
                if not grows_any(user, outbreak.crops):
                    continue
                if regions and (user.county or "").lower() not in regions:
                    continue
                sent += self.send_alert(user, Alert(
                    type="pest",
                    severity=outbreak.severity,
                    title=f"{outbreak.pest} Alert",
                    message=outbreak.message,
                    region=user.county,
                    crop=", ".join(outbreak.crops),
                ))
        return sent

    def check_market_alerts(self) -> int:
        sent = 0
        for user in self.store.get_users_with_crops():
            region = user.county or "Kenya"
            for crop in user.crops:
                try:
                    alert = self._market_alert(crop, region)
                except Exception as e:
                    logger.warning("Failed to check market prices for user %s, crop %s: %s", user.id, crop, e)
                    continue
                if alert is not None:
                    sent += self.send_alert(user, alert)
        return sent

    def _market_alert(self, crop: str, region: str) -> Optional[Alert]:
        prices = self.market.get_prices(crop, region)
        if not prices:
            return None
        current = prices[0]
        previous = next((p for p in prices[1:] if p.date != current.date), None)
        if previous is None or not previous.price:
            return None

        change = abs((current.price - previous.price) / previous.price * 100)
        if change < MARKET_ALERT_THRESHOLD:
            return None
        direction = "increased" if current.price > previous.price else "decreased"
        return Alert(
            type="market",
            severity="high" if change >= MARKET_HIGH_THRESHOLD else "medium",
            title=f"{crop} Price Alert",
            message=(f"{crop} prices have {direction} by {change:.1f}% in {region}. "
                     f"Current price: KES {current.price}/{current.unit}"),
            region=region,
            crop=crop,
        )

    # ── Diffusion ───────────────────────────────────────────

    def send_alert(self, user: UserProfile, alert: Alert) -> int:
        """Enregistre puis pousse l'alerte ; 1 si délivrée, 0 sinon. Ne lève jamais."""
        if not user.phone_number:
            logger.warning("User %s has no phone number for alert", user.id)
            return 0
        alert.user_id = user.id
        try:
            self.store.save_alert(alert)
        except Exception as e:
            logger.error("Failed to save alert for user %s: %s", user.id, e)

        message = f"{alert.title}\n\n{alert.message}"
        for channel in self.channels:
            try:
                if channel.send_message(user.phone_number, message):
                    logger.info("Alert sent via %s to user %s: %s", channel.name, user.id, alert.title)
                    return 1
            except Exception as e:
                logger.warning("%s delivery failed for user %s: %s", channel.name, user.id, e)
        logger.error("Failed to deliver alert to user %s on every channel", user.id)
        return 0


__all__ = ["AlertService", "PestOutbreak", "PEST_OUTBREAKS", "grows_any"]
