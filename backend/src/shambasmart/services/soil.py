"""
Sols — propriétés ISRIC SoilGrids (0-5 cm) et recommandations.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import requests

from shambasmart.services.location import coordinates_for

logger = logging.getLogger("ShambaSmart.Soil")


@dataclass
class SoilProperties:
    location: str
    ph: Optional[float] = None
    organic_carbon: Optional[float] = None    # g/kg
    bulk_density: Optional[float] = None      # g/cm3
    depth: str = "0-5cm"


@dataclass
class SoilRecommendation:
    property: str
    value: float
    status: str      # optimal | low | high | critical
    recommendation: str


def recommendations_for(soil: SoilProperties) -> List[SoilRecommendation]:
    recs: List[SoilRecommendation] = []

    if soil.ph is not None:
        if soil.ph < 5.0:
            recs.append(SoilRecommendation("pH", soil.ph, "critical",
                "Soil is very acidic. Apply agricultural lime (2-4 tons/hectare) to raise pH. Test soil after 3-6 months."))
        elif soil.ph < 6.0:
            recs.append(SoilRecommendation("pH", soil.ph, "low",
                "Soil is slightly acidic. Apply lime (1-2 tons/hectare) to raise pH to optimal range (6.0-7.0)."))
        elif soil.ph > 7.5:
            recs.append(SoilRecommendation("pH", soil.ph, "high",
                "Soil is alkaline. Consider adding organic matter or sulfur to lower pH if needed for specific crops."))
        else:
            recs.append(SoilRecommendation("pH", soil.ph, "optimal",
                "Soil pH is in optimal range for most crops. Maintain with regular organic matter additions."))

    if soil.organic_carbon is not None:
        percent = soil.organic_carbon / 10
        if percent < 1.0:
            status, text = "critical", "Very low organic matter. Add 10-20 tons/hectare of compost or well-rotted manure. Plant cover crops."
        elif percent < 2.0:
            status, text = "low", "Low organic matter. Add 5-10 tons/hectare of organic matter. Incorporate crop residues."
        elif percent > 5.0:
            status, text = "high", "High organic matter. Excellent for soil health. Maintain with regular additions."
        else:
            status, text = "optimal", "Organic matter is in good range. Maintain with regular compost additions."
        recs.append(SoilRecommendation("Organic Carbon", percent, status, text))

    if soil.bulk_density is not None:
        if soil.bulk_density > 1.6:
            status, text = "critical", "Very high bulk density indicates compaction. Deep tillage, add organic matter, avoid heavy machinery."
        elif soil.bulk_density > 1.4:
            status, text = "high", "High bulk density. Add organic matter, practice minimum tillage, use cover crops."
        elif soil.bulk_density < 1.0:
            status, text = "low", "Low bulk density (very loose). May need slight compaction for seed establishment."
        else:
            status, text = "optimal", "Bulk density is optimal. Maintain with organic matter and proper tillage."
        recs.append(SoilRecommendation("Bulk Density", soil.bulk_density, status, text))

    return recs


def format_soil(soil: SoilProperties) -> str:
    lines = [f"Soil data for {soil.location} ({soil.depth}):"]
    if soil.ph is not None:
        lines.append(f"pH: {soil.ph:.1f}")
    if soil.organic_carbon is not None:
        lines.append(f"Organic carbon: {soil.organic_carbon:.1f} g/kg")
    if soil.bulk_density is not None:
        lines.append(f"Bulk density: {soil.bulk_density:.2f} g/cm3")
    for rec in recommendations_for(soil):
        lines.append(f"- {rec.property} ({rec.status}): {rec.recommendation}")
    return "\n".join(lines)


class SoilService:
    # propriété SoilGrids → diviseur pour l'unité usuelle
    PROPERTIES = {"phh2o": 10.0, "ocd": 1.0, "bdfie": 100.0}

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _fetch_mean(self, prop: str, coords: Tuple[float, float], depth: str) -> Optional[float]:
        lat, lon = coords
        try:
            response = self.session.get(
                self.url,
                params={"lon": lon, "lat": lat, "property": prop, "depth": depth, "value": "mean"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            for layer in response.json().get("properties", {}).get("layers", []):
                if layer.get("name") != prop:
                    continue
                for d in layer.get("depths", []):
                    mean = (d.get("values") or {}).get("mean")
                    if mean is not None:
                        return float(mean) / self.PROPERTIES[prop]
        except (requests.RequestException, ValueError, TypeError) as e:
            logger.warning("Error fetching soil property %s: %s", prop, e)
        return None

    def get_properties(self, location: str, coordinates: Optional[Tuple[float, float]] = None) -> SoilProperties:
        coords = coordinates or coordinates_for(location)
        soil = SoilProperties(
            location=location,
            ph=self._fetch_mean("phh2o", coords, "0-5cm"),
            organic_carbon=self._fetch_mean("ocd", coords, "0-5cm"),
            bulk_density=self._fetch_mean("bdfie", coords, "0-5cm"),
        )
        logger.info("Fetched soil properties for %s (pH=%s)", location, soil.ph)
        return soil


__all__ = ["SoilService", "SoilProperties", "SoilRecommendation", "recommendations_for", "format_soil"]
