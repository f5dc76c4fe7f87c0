"""
Localisation — coordonnées GPS → comté kenyan.

1. Reverse geocoding Nominatim (OpenStreetMap), timeout court.
2. Repli : centroïde de comté le plus proche (haversine), table embarquée.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests

logger = logging.getLogger("ShambaSmart.Location")

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


@dataclass(frozen=True)
class CountyCentroid:
    name: str
    lat: float
    lon: float
    radius_deg: float


COUNTY_CENTROIDS: List[CountyCentroid] = [
    CountyCentroid("Nairobi", -1.2921, 36.8219, 0.5),
    CountyCentroid("Mombasa", -4.0435, 39.6682, 0.5),
    CountyCentroid("Kisumu", -0.0917, 34.7680, 0.8),
    CountyCentroid("Nakuru", -0.3031, 36.0800, 0.8),
    CountyCentroid("Uasin Gishu", 0.5143, 35.2698, 0.8),
    CountyCentroid("Kiambu", -1.0332, 37.0693, 0.6),
    CountyCentroid("Nyeri", -0.4197, 36.9475, 0.6),
    CountyCentroid("Meru", 0.0463, 37.6559, 0.7),
    CountyCentroid("Embu", -0.5397, 37.4574, 0.5),
    CountyCentroid("Machakos", -1.5167, 37.2667, 0.6),
    CountyCentroid("Kakamega", 0.2842, 34.7523, 0.7),
    CountyCentroid("Bungoma", 0.5695, 34.5584, 0.6),
    CountyCentroid("Busia", 0.4604, 34.1115, 0.5),
    CountyCentroid("Siaya", 0.0607, 34.2881, 0.6),
    CountyCentroid("Homa Bay", -0.5273, 34.4571, 0.6),
    CountyCentroid("Migori", -1.0634, 34.4731, 0.6),
    CountyCentroid("Kisii", -0.6773, 34.7796, 0.5),
    CountyCentroid("Nyamira", -0.5639, 34.9444, 0.4),
    CountyCentroid("Kericho", -0.3670, 35.2831, 0.6),
    CountyCentroid("Bomet", -0.7814, 35.3416, 0.5),
    CountyCentroid("Narok", -1.0808, 35.8711, 0.8),
    CountyCentroid("Kajiado", -1.8524, 36.7875, 0.8),
    CountyCentroid("Makueni", -1.8047, 37.6204, 0.6),
    CountyCentroid("Kitui", -1.3669, 38.0106, 0.7),
    CountyCentroid("Garissa", -0.4532, 39.6464, 0.8),
    CountyCentroid("Wajir", 1.7474, 40.0573, 1.0),
    CountyCentroid("Mandera", 3.9373, 41.8569, 1.0),
    CountyCentroid("Isiolo", 0.3550, 37.5836, 0.7),
    CountyCentroid("Marsabit", 2.3347, 37.9903, 1.0),
    CountyCentroid("Turkana", 3.1167, 35.6000, 1.2),
    CountyCentroid("West Pokot", 1.5167, 35.0000, 0.8),
    CountyCentroid("Samburu", 1.1000, 36.7167, 0.8),
    CountyCentroid("Trans Nzoia", 1.0167, 35.0000, 0.7),
    CountyCentroid("Elgeyo Marakwet", 0.5167, 35.5167, 0.7),
    CountyCentroid("Nandi", 0.1833, 35.0000, 0.6),
    CountyCentroid("Laikipia", 0.0333, 36.3667, 0.8),
    CountyCentroid("Nyandarua", -0.3000, 36.4000, 0.6),
    CountyCentroid("Murang'a", -0.7167, 37.1500, 0.6),
    CountyCentroid("Kirinyaga", -0.5000, 37.3333, 0.5),
    CountyCentroid("Tharaka Nithi", -0.3333, 37.6500, 0.5),
]

# Villes courantes → centroïde utilisé pour les API météo / sol
TOWN_ALIASES: Dict[str, str] = {
    "eldoret": "Uasin Gishu",
    "thika": "Kiambu",
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearest_county(lat: float, lon: float) -> str:
    """Comté dont le centroïde est le plus proche, en privilégiant ceux dont le rayon couvre le point."""
    ranked = sorted(COUNTY_CENTROIDS, key=lambda c: haversine_km(lat, lon, c.lat, c.lon))
    for county in ranked:
        if haversine_km(lat, lon, county.lat, county.lon) <= county.radius_deg * KM_PER_DEGREE:
            return county.name
    return ranked[0].name


def coordinates_for(location: Optional[str], default: str = "Nairobi") -> Tuple[float, float]:
    """Coordonnées approximatives d'un comté / d'une ville (repli : Nairobi)."""
    text = (location or "").lower()
    text = next((alias for town, alias in TOWN_ALIASES.items() if town in text), text).lower()
    for county in COUNTY_CENTROIDS:
        if county.name.lower() in text:
            return county.lat, county.lon
    fallback = next(c for c in COUNTY_CENTROIDS if c.name == default)
    return fallback.lat, fallback.lon


def _clean_county_name(name: str) -> str:
    cleaned = name.strip()
    if cleaned.lower().endswith(" county"):
        cleaned = cleaned[: -len(" county")]
    return cleaned


class LocationService:
    def __init__(self, url: str, user_agent: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def county_from_coordinates(self, lat: float, lon: float) -> str:
        try:
            response = self.session.get(
                self.url,
                params={"lat": lat, "lon": lon, "format": "json", "addressdetails": 1},
                timeout=self.timeout,
            )
            response.raise_for_status()
            address = response.json().get("address") or {}
            county = (
                address.get("county")
                or address.get("state_district")
                or address.get("region")
                or address.get("state")
            )
            if county:
                return _clean_county_name(county)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Reverse geocoding failed, using centroid table: %s", e)

        return nearest_county(lat, lon)


__all__ = [
    "LocationService",
    "COUNTY_CENTROIDS",
    "haversine_km",
    "nearest_county",
    "coordinates_for",
]
