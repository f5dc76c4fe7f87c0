"""
Base de connaissances locale — toujours disponible, jamais en panne.

Tables : ravageurs des cultures, maladies du bétail, calendriers de semis
par comté, conseils de gestion des sols. Sources : fiches KALRO /
PlantWise / Ministère de l'Agriculture (Kenya), résumées.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger("ShambaSmart.KnowledgeBase")


@dataclass(frozen=True)
class PestProfile:
    name: str
    crop: str            # culture ciblée, ou "general"
    symptoms: str
    control: str


@dataclass(frozen=True)
class LivestockDisease:
    name: str
    livestock: str
    symptoms: str
    treatment: str


@dataclass(frozen=True)
class PlantingCalendar:
    county: str
    crops: Sequence[str]
    long_rains: str
    short_rains: str


@dataclass(frozen=True)
class SoilTip:
    title: str
    description: str


PESTS: List[PestProfile] = [
    PestProfile("Fall Armyworm", "maize",
                "Ragged holes in leaves, sawdust-like frass in the whorl, damaged cobs",
                "Scout weekly, hand-pick egg masses, spray neem extract or emamectin benzoate early in the morning, push-pull with desmodium and brachiaria"),
    PestProfile("Maize Stalk Borer", "maize",
                "Window-pane feeding on young leaves, dead hearts, tunnels in stems",
                "Apply Bt-based or approved granules in the funnel, destroy crop residues after harvest, intercrop with legumes"),
    PestProfile("Maize Lethal Necrosis", "maize",
                "Yellowing from leaf edges, dead heart, poorly filled cobs",
                "Use certified MLN-tolerant seed, rotate with non-cereal crops, control thrips and aphid vectors, rogue infected plants"),
    PestProfile("Tuta absoluta (Tomato Leafminer)", "tomato",
                "Blotch mines in leaves, holes in fruit, dark frass",
                "Pheromone traps, remove infested leaves, rotate insecticides such as chlorantraniliprole, avoid planting tomato after tomato"),
    PestProfile("Late Blight", "potato",
                "Dark water-soaked spots on leaves, white mould under leaves in humid weather, rotting tubers",
                "Plant certified seed, spray mancozeb or metalaxyl preventively in wet weather, hill up soil, remove volunteer plants"),
    PestProfile("Bean Fly", "beans",
                "Wilting seedlings, swollen cracked stems at soil level",
                "Seed dressing, early planting, earth up stems, rotate with cereals"),
    PestProfile("Coffee Berry Disease", "coffee",
                "Dark sunken lesions on green berries, berries drop",
                "Copper-based fungicides at flowering and early berry stage, prune for air flow, plant resistant varieties like Ruiru 11 or Batian"),
    PestProfile("Aphids", "general",
                "Curled leaves, sticky honeydew, sooty mould, stunted growth",
                "Spray soapy water or neem, encourage ladybirds, use approved systemic insecticide only if severe"),
    PestProfile("Cutworms", "general",
                "Seedlings cut at soil level overnight",
                "Deep ploughing before planting, collar around seedlings, bait with approved insecticide at dusk"),
]

LIVESTOCK_DISEASES: List[LivestockDisease] = [
    LivestockDisease("East Coast Fever", "cattle",
                     "High fever, swollen lymph nodes near ears, difficulty breathing, frothing",
                     "Call a vet immediately, buparvaquone injection, control ticks with regular dipping or spraying, vaccinate calves (ITM)"),
    LivestockDisease("Foot and Mouth Disease", "cattle, goat, sheep",
                     "Blisters on mouth and feet, drooling, lameness, drop in milk",
                     "Report to the county veterinary office, isolate animals, vaccinate every 6 months, restrict movement"),
    LivestockDisease("Mastitis", "cattle, goat",
                     "Swollen hot udder, clots or blood in milk, reduced milk",
                     "Milk the affected quarter out completely, intramammary antibiotics on vet advice, clean milking hygiene, dry cow therapy"),
    LivestockDisease("Newcastle Disease", "chicken, poultry",
                     "Twisted neck, greenish diarrhoea, coughing, sudden deaths",
                     "No cure, vaccinate every 3 months (I-2 or LaSota), isolate sick birds, clean and disinfect housing"),
    LivestockDisease("Peste des Petits Ruminants (PPR)", "goat, sheep",
                     "Fever, nasal and eye discharge, mouth sores, diarrhoea",
                     "Vaccinate yearly, isolate sick animals, report to the vet, supportive care"),
    LivestockDisease("Lumpy Skin Disease", "cattle",
                     "Firm skin nodules, fever, swollen legs, drop in milk",
                     "Vaccinate annually, control biting flies, isolate affected animals, treat secondary infections on vet advice"),
]

PLANTING_CALENDARS: List[PlantingCalendar] = [
    PlantingCalendar("Nakuru", ("maize", "wheat", "beans", "potatoes"),
                     "Plant late March to April", "Plant October to early November"),
    PlantingCalendar("Kisumu", ("maize", "sorghum", "rice", "beans"),
                     "Plant March to April", "Plant August to September"),
    PlantingCalendar("Nairobi", ("maize", "beans", "kale", "tomatoes"),
                     "Plant mid March to April", "Plant mid October to November"),
    PlantingCalendar("Machakos", ("sorghum", "millet", "green grams", "cowpeas"),
                     "Plant mid March", "Plant mid October (main season)"),
    PlantingCalendar("Nyeri", ("coffee", "tea", "maize", "potatoes"),
                     "Plant March to April", "Plant October to November"),
    PlantingCalendar("Eldoret", ("maize", "wheat", "beans"),
                     "Plant April (single long season)", "Short rains rarely used for maize"),
    PlantingCalendar("Kakamega", ("maize", "beans", "cassava", "sugarcane"),
                     "Plant February to March", "Plant August to September"),
    PlantingCalendar("Mombasa", ("cassava", "coconut", "cowpeas", "maize"),
                     "Plant April to May", "Plant October to November"),
]

SOIL_TIPS: List[SoilTip] = [
    SoilTip("Soil testing", "Test soil pH and nutrients every 2-3 seasons through KALRO or county labs before buying fertilizer."),
    SoilTip("Acidic soils", "If pH is below 5.5, apply agricultural lime 2-4 weeks before planting and use non-acidifying fertilizers like CAN."),
    SoilTip("Organic matter", "Add well-decomposed manure or compost (2-5 tonnes per acre) to improve water holding and nutrient supply."),
    SoilTip("Erosion control", "Build terraces or grass strips on slopes, plant along contours and keep the soil covered with mulch."),
    SoilTip("Crop rotation", "Rotate cereals with legumes such as beans to fix nitrogen and break pest cycles."),
]

PEST_TRIGGERS = ("pest", "insect", "worm", "bug", "damage", "holes", "leaf", "symptom", "disease")
LIVESTOCK_TRIGGERS = ("cow", "cattle", "goat", "sheep", "chicken", "poultry", "livestock", "animal", "fever", "symptom")
CALENDAR_TRIGGERS = ("planting", "calendar", "season", "rain", "when")
SOIL_TRIGGERS = ("soil", "erosion", "organic", "fertility", "nutrient")
_PH_WORD = re.compile(r"\bph\b")


def _words(query: str) -> List[str]:
    return [w for w in query.lower().split() if len(w) > 2]


def _mentions_soil(text: str) -> bool:
    return any(k in text for k in SOIL_TRIGGERS) or bool(_PH_WORD.search(text))


def _same_crop(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a == b or a.rstrip("es") == b.rstrip("es") or a.rstrip("s") == b.rstrip("s")


class LocalDataSource:
    """Recherche par mots-clés dans les tables locales, sans I/O."""

    def __init__(
        self,
        pests: Sequence[PestProfile] = tuple(PESTS),
        diseases: Sequence[LivestockDisease] = tuple(LIVESTOCK_DISEASES),
        calendars: Sequence[PlantingCalendar] = tuple(PLANTING_CALENDARS),
        soil_tips: Sequence[SoilTip] = tuple(SOIL_TIPS),
    ):
        self.pests = list(pests)
        self.diseases = list(diseases)
        self.calendars = list(calendars)
        self.soil_tips = list(soil_tips)

    # ── Recherche ───────────────────────────────────────────

    def search_pests(self, query: str, crop: Optional[str] = None) -> List[PestProfile]:
        words = _words(query)
        results = []
        for pest in self.pests:
            text = f"{pest.name} {pest.symptoms} {pest.control}".lower()
            matches_query = not words or any(w in text for w in words)
            matches_crop = not crop or pest.crop == "general" or _same_crop(pest.crop, crop)
            if matches_query and matches_crop:
                results.append(pest)
        return results

    def pests_for_crop(self, crop: str) -> List[PestProfile]:
        return [p for p in self.pests if p.crop == "general" or _same_crop(p.crop, crop)]

    def search_livestock_diseases(self, query: str, livestock: Optional[str] = None) -> List[LivestockDisease]:
        words = _words(query)
        results = []
        for disease in self.diseases:
            text = f"{disease.name} {disease.symptoms} {disease.treatment}".lower()
            matches_query = not words or any(w in text for w in words)
            matches_type = not livestock or livestock.lower() in disease.livestock.lower()
            if matches_query and matches_type:
                results.append(disease)
        return results

    def planting_calendar(self, county: Optional[str]) -> Optional[PlantingCalendar]:
        if not county:
            return self.calendars[0] if self.calendars else None
        county = county.lower()
        return next((c for c in self.calendars if c.county.lower() == county), None)

    # ── Formatage pour les prompts ──────────────────────────

    @staticmethod
    def format_pests(pests: Sequence[PestProfile]) -> str:
        return "\n\n".join(
            f"Pest: {p.name}\nCrop: {p.crop}\nSymptoms: {p.symptoms}\nControl: {p.control}" for p in pests
        )

    @staticmethod
    def format_diseases(diseases: Sequence[LivestockDisease]) -> str:
        return "\n\n".join(
            f"Disease: {d.name}\nLivestock: {d.livestock}\nSymptoms: {d.symptoms}\nTreatment: {d.treatment}"
            for d in diseases
        )

    @staticmethod
    def format_calendar(calendar: Optional[PlantingCalendar]) -> str:
        if calendar is None:
            return ""
        return (
            f"County: {calendar.county}\n"
            f"Recommended Crops: {', '.join(calendar.crops)}\n"
            f"Long Rains: {calendar.long_rains}\n"
            f"Short Rains: {calendar.short_rains}"
        )

    @staticmethod
    def format_soil_tips(tips: Sequence[SoilTip]) -> str:
        return "\n\n".join(f"{t.title}: {t.description}" for t in tips)

    def all_as_text(self) -> List[str]:
        """Toutes les tables, une section par table (repli générique)."""
        texts = []
        if self.pests:
            texts.append("PEST AND DISEASE INFORMATION:\n" + self.format_pests(self.pests))
        if self.diseases:
            texts.append("LIVESTOCK DISEASE INFORMATION:\n" + self.format_diseases(self.diseases))
        if self.calendars:
            texts.append("PLANTING CALENDAR INFORMATION:\n"
                         + "\n\n".join(self.format_calendar(c) for c in self.calendars))
        if self.soil_tips:
            texts.append("SOIL MANAGEMENT TIPS:\n" + self.format_soil_tips(self.soil_tips))
        return texts

    def search_all(
        self,
        query: str,
        crop: Optional[str] = None,
        region: Optional[str] = None,
        livestock: Optional[str] = None,
    ) -> List[str]:
        """Passages pertinents, dans l'ordre : ravageurs, bétail, calendrier, sols."""
        results: List[str] = []
        text = query.lower()

        if crop or any(k in text for k in PEST_TRIGGERS):
            pests = self.search_pests(query, crop) or (self.pests_for_crop(crop) if crop else [])
            if pests:
                results.append("PEST INFORMATION:\n" + self.format_pests(pests))

        if livestock or any(k in text for k in LIVESTOCK_TRIGGERS):
            diseases = self.search_livestock_diseases(query, livestock)
            if not diseases and livestock:
                diseases = [d for d in self.diseases if livestock.lower() in d.livestock.lower()]
            if diseases:
                results.append("LIVESTOCK DISEASE INFORMATION:\n" + self.format_diseases(diseases))

        if region:
            calendar = self.planting_calendar(region)
            if calendar and (
                any(k in text for k in CALENDAR_TRIGGERS)
                or any(c.lower() in text for c in calendar.crops)
            ):
                results.append("PLANTING CALENDAR:\n" + self.format_calendar(calendar))

        if self.soil_tips and _mentions_soil(text):
            results.append("SOIL MANAGEMENT:\n" + self.format_soil_tips(self.soil_tips))

        return results


__all__ = [
    "PestProfile",
    "LivestockDisease",
    "PlantingCalendar",
    "SoilTip",
    "LocalDataSource",
    "PESTS",
    "LIVESTOCK_DISEASES",
    "PLANTING_CALENDARS",
    "SOIL_TIPS",
]
