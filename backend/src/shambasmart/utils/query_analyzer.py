"""
Query Analyzer — Classification pure de la forme d'une question.

Aucune I/O : texte brut → complexité, type, besoin de détail, longueur
de réponse visée, urgence et termes agricoles reconnus. Les générateurs
s'en servent pour calibrer la longueur et le ton de leurs réponses.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

GREETING_PHRASES = ("hello", "hi", "hey", "greetings", "good morning", "good afternoon")
COMMAND_PHRASES = ("tell me", "show me", "give me", "explain", "describe", "list")
QUESTION_WORDS = ("what", "when", "where", "why", "how", "which", "who")

AGRICULTURAL_TERMS = (
    "maize", "wheat", "rice", "beans", "potato", "tomato", "coffee", "tea",
    "cattle", "cow", "goat", "sheep", "chicken", "poultry",
    "pest", "disease", "symptom", "treatment", "spray",
    "weather", "rain", "climate", "drought", "flood",
    "price", "market", "sell", "buy", "harvest", "planting",
    "soil", "fertilizer", "irrigation", "watering",
)

COMPLEX_INDICATORS = (
    "explain in detail", "comprehensive", "step by step", "all about",
    "compare", "difference between", "advantages and disadvantages",
)
DETAIL_PHRASES = (
    "explain", "describe", "detail", "comprehensive", "step by step",
    "how to", "guide", "tutorial", "all about", "everything about",
)

URGENT_TERMS = (
    "emergency", "urgent", "dying", "dead", "critical", "severe",
    "not eating", "not drinking", "bleeding", "unconscious", "collapse",
)
HEALTH_TERMS = ("sick", "disease", "symptom", "treatment", "medicine", "vet")

# Bandes de longueur (en mots) par catégorie de réponse
LENGTH_BANDS: Dict[str, Dict[str, int]] = {
    "short": {"min": 20, "max": 100, "target": 50},
    "medium": {"min": 100, "max": 300, "target": 200},
    "long": {"min": 300, "max": 800, "target": 500},
}


@dataclass(frozen=True)
class QueryAnalysis:
    complexity: str = "moderate"          # simple | moderate | complex
    type: str = "statement"               # greeting | command | question | statement
    requires_detail: bool = False
    estimated_response_length: str = "medium"   # short | medium | long
    urgency: str = "low"                  # low | medium | high
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "complexity": self.complexity,
            "type": self.type,
            "requiresDetail": self.requires_detail,
            "estimatedResponseLength": self.estimated_response_length,
            "urgency": self.urgency,
            "keywords": list(self.keywords),
        }


def _detect_type(text: str, word_count: int) -> str:
    if word_count < 5 and any(g in text for g in GREETING_PHRASES):
        return "greeting"
    if any(c in text for c in COMMAND_PHRASES):
        return "command"
    if "?" in text or any(text.startswith(q) or f" {q} " in text for q in QUESTION_WORDS):
        return "question"
    return "statement"


def _complexity(text: str, word_count: int, keywords: Tuple[str, ...]) -> str:
    if word_count <= 5 and len(keywords) <= 1:
        return "simple"
    if word_count > 20 or len(keywords) > 3 or any(i in text for i in COMPLEX_INDICATORS):
        return "complex"
    return "moderate"


def _urgency(text: str) -> str:
    if any(t in text for t in URGENT_TERMS):
        return "high"
    if any(t in text for t in HEALTH_TERMS):
        return "medium"
    return "low"


def analyze(query: str) -> QueryAnalysis:
    """Analyse déterministe d'une question (fonction pure)."""
    text = (query or "").lower().strip()
    word_count = len(text.split()) if text else 0

    keywords = tuple(term for term in AGRICULTURAL_TERMS if term in text)
    complexity = _complexity(text, word_count, keywords)
    requires_detail = complexity == "complex" or any(p in text for p in DETAIL_PHRASES)

    if complexity == "simple" and not requires_detail:
        length = "short"
    elif complexity == "complex" or requires_detail:
        length = "long"
    else:
        length = "medium"

    return QueryAnalysis(
        complexity=complexity,
        type=_detect_type(text, word_count),
        requires_detail=requires_detail,
        estimated_response_length=length,
        urgency=_urgency(text),
        keywords=keywords,
    )


def length_band(analysis: QueryAnalysis) -> Dict[str, int]:
    """Bande {min, max, target} en mots pour la réponse visée."""
    return dict(LENGTH_BANDS.get(analysis.estimated_response_length, LENGTH_BANDS["medium"]))


def is_emergency(query: str) -> bool:
    return analyze(query).urgency == "high"


def is_simple_query(query: str) -> bool:
    result = analyze(query)
    return result.complexity == "simple" and not result.requires_detail


__all__ = [
    "QueryAnalysis",
    "analyze",
    "length_band",
    "is_emergency",
    "is_simple_query",
    "AGRICULTURAL_TERMS",
]
