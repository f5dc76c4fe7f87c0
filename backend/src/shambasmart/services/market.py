"""
Marché — prix des produits (KES/kg) avec tendance.

Si aucune API n'est configurée ou si elle échoue, on rend un prix de
référence tiré de la table par défaut.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import requests

logger = logging.getLogger("ShambaSmart.Market")

DEFAULT_PRICES_KES = {
    "maize": 45,
    "wheat": 55,
    "rice": 120,
    "beans": 150,
    "potatoes": 60,
    "tomatoes": 80,
    "onions": 100,
    "cabbage": 40,
}
FALLBACK_PRICE_KES = 50


@dataclass
class MarketPrice:
    crop: str
    region: str
    price: float
    unit: str = "kg"
    date: str = ""
    market: Optional[str] = None
    trend: str = "stable"   # up | down | stable

    def describe(self) -> str:
        where = f" at {self.market}" if self.market else ""
        return f"{self.crop} in {self.region}{where}: KES {self.price}/{self.unit} ({self.trend}, {self.date[:10]})"


def price_trend(history: Sequence[float]) -> str:
    """Compare la moyenne des 3 dernières valeurs aux 3 précédentes (±5 %)."""
    if not history or len(history) < 2:
        return "stable"
    recent = list(history[-3:])
    older = list(history[-6:-3])
    if not older:
        return "stable"
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if older_avg == 0:
        return "stable"
    change = (recent_avg - older_avg) / older_avg * 100
    if change > 5:
        return "up"
    if change < -5:
        return "down"
    return "stable"


def default_prices(crop: str, region: str) -> List[MarketPrice]:
    return [MarketPrice(
        crop=crop,
        region=region,
        price=DEFAULT_PRICES_KES.get(crop.lower(), FALLBACK_PRICE_KES),
        date=datetime.now(timezone.utc).isoformat(),
    )]


class MarketService:
    """
    GET {url}?commodity=&region= → [{"price", "unit", "date", "market", "historical": [...]}]
    """

    def __init__(self, url: str = "", timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_prices(self, crop: str, region: str) -> List[MarketPrice]:
        if not self.url:
            return default_prices(crop, region)
        try:
            response = self.session.get(
                self.url,
                params={"commodity": crop, "region": region},
                timeout=self.timeout,
            )
            response.raise_for_status()
            prices = [
                MarketPrice(
                    crop=crop,
                    region=region,
                    price=float(item["price"]),
                    unit=item.get("unit") or "kg",
                    date=str(item.get("date", "")),
                    market=item.get("market"),
                    trend=price_trend(item.get("historical") or []),
                )
                for item in response.json()
            ]
            return prices or default_prices(crop, region)
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning("Market API not available for %s/%s, using defaults: %s", crop, region, e)
            return default_prices(crop, region)


__all__ = ["MarketService", "MarketPrice", "price_trend", "default_prices", "DEFAULT_PRICES_KES"]
