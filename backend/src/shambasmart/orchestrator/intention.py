import logging
import re
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from shambasmart.orchestrator.state import ConversationTurn, UserContext
from shambasmart.services.generation import TextGenerator

logger = logging.getLogger("ShambaSmart.IntentClassifier")

# ======================================================================
# 1. INTENTIONS ET RÈGLES
# ======================================================================


class Intent(str, Enum):
    GREETING = "greeting"
    CROP = "crop"
    LIVESTOCK = "livestock"
    PEST = "pest"
    WEATHER = "weather"
    MARKET = "market"
    EXTENSION = "extension"
    GENERAL = "general"


# Catégories acceptées en sortie du classifieur IA
AI_CATEGORIES = (
    Intent.GREETING, Intent.CROP, Intent.LIVESTOCK, Intent.PEST,
    Intent.WEATHER, Intent.MARKET, Intent.EXTENSION,
)


def _rule(*prefixes: str, words: Sequence[str] = ()) -> "re.Pattern[str]":
    """
    `prefixes` : début de mot, « pest » couvre « pests » mais pas « tempest ».
    `words` : mot entier au pluriel près, « tea » couvre « teas » mais pas « teacher ».
    """
    alternatives = []
    if prefixes:
        alternatives.append(r"\b(?:" + "|".join(re.escape(k) for k in prefixes) + r")")
    if words:
        alternatives.append(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")(?:e?s)?\b")
    return re.compile("|".join(alternatives), re.IGNORECASE)


# Ordre = priorité (le premier qui correspond est l'intention principale).
# Les thèmes spécifiques passent avant « crop », dont le vocabulaire
# (noms de cultures) apparaît dans presque toutes les questions.
INTENT_RULES: List[Tuple[Intent, "re.Pattern[str]"]] = [
    (Intent.LIVESTOCK, _rule(
        "livestock", "cattle", "cow", "goat", "sheep", "chicken", "poultry",
        "dairy", "milk", "meat", "breeding",
    )),
    (Intent.PEST, _rule(
        "pest", "disease", "symptom", "infected", "damage", "control", "treatment",
        "spray", "fungus", "bacteria", "virus", "holes", "insect", "worm", "wilt",
    )),
    (Intent.WEATHER, _rule(
        "weather", "rain", "rainfall", "climate", "forecast", "drought", "flood",
        "temperature", "humidity",
    )),
    (Intent.MARKET, _rule(
        "price", "market", "sell", "buy", "trading", "cost", "value", "revenue", "profit",
    )),
    (Intent.CROP, _rule(
        "crop", "plant", "harvest", "growing",
        words=("maize", "wheat", "rice", "bean", "potato", "tomato", "coffee", "tea", "sorghum", "millet"),
    )),
    (Intent.EXTENSION, _rule(
        "help", "support", "extension", "officer", "contact", "assistance",
    )),
]

# ── Salutations ─────────────────────────────────────────────

GREETINGS = (
    # English
    "hello", "hi", "hey", "greetings", "good morning", "good afternoon",
    "good evening", "good day", "howdy", "sup", "what's up", "how are you",
    "how do you do", "nice to meet you", "pleased to meet you",
    # Kiswahili
    "habari", "jambo", "mambo", "salama", "shikamoo", "hujambo", "habari yako",
    "habari za asubuhi", "habari za mchana", "habari za jioni",
)

FARMING_KEYWORDS = (
    # English
    "plant", "grow", "crop", "maize", "farm", "harvest", "pest", "weather", "price", "market",
    # Kiswahili
    "panda", "kupanda", "lima", "kulima", "mahindi", "shamba", "mavuno", "wadudu", "hali",
    "bei", "soko", "mbolea", "mbegu", "maji", "udongo", "zao", "mazao", "mifugo",
    "ng'ombe", "kuku", "mbuzi",
)

GREETING_MAX_LENGTH = 20

GREETING_REPLIES = {
    "en": {
        "first": ("Hello! I'm your agricultural assistant. I can help you with crops, livestock, "
                  "pests, weather, or market information. What would you like to know?"),
        "continuation": "Hello! Feel free to ask me any farming question. I'm here to help.",
    },
    "sw": {
        "first": ("Karibu! Mimi ni msaidizi wako wa kilimo. Nisaidie kwa swali lolote kuhusu mazao, "
                  "mifugo, wadudu, hali ya hewa, au soko. Unaweza kuuliza nini?"),
        "continuation": "Habari! Unaweza kuuliza swali lolote kuhusu kilimo. Nitafurahi kukusaidia.",
    },
}


def is_greeting(text: str) -> bool:
    """Texte court (< 20 car.) réduit à une salutation, sans vocabulaire agricole."""
    query = (text or "").lower().strip()
    if not query or any(kw in query for kw in FARMING_KEYWORDS):
        return False
    if len(query) >= GREETING_MAX_LENGTH:
        return False
    return any(
        query == g or query.startswith(g + " ") or query.endswith(" " + g)
        for g in GREETINGS
    )


def greeting_reply(language: str, history: Optional[Sequence[ConversationTurn]] = None) -> str:
    replies = GREETING_REPLIES.get(language, GREETING_REPLIES["en"])
    return replies["continuation"] if history else replies["first"]


def keyword_intents(text: str) -> List[Intent]:
    """Tous les thèmes dont le vocabulaire apparaît, dans l'ordre de INTENT_RULES."""
    return [intent for intent, pattern in INTENT_RULES if pattern.search(text or "")]


# ======================================================================
# 2. PROMPT DU CLASSIFIEUR IA
# ======================================================================

CLASSIFIER_PROMPT = """You are an intelligent intent classifier for an agricultural AI assistant in Kenya. Analyze the farmer's question and classify it into ONE of these categories:

Categories:
- greeting: Simple greetings, casual conversation, "hello", "hi", "how are you", or very short non-agricultural messages
- crop: Questions about crops, planting, growing, harvesting, crop varieties, crop management, soil for crops
- livestock: Questions about cattle, goats, chickens, sheep, livestock health, feeding, breeding, animal care
- pest: Questions about pests, diseases, symptoms, pest control, disease treatment, infections
- weather: Questions about weather, rainfall, climate, forecasts, weather alerts, drought, flooding
- market: Questions about prices, markets, selling, trading, market trends, where to sell, best prices
- extension: Questions about getting help, contacting extension officers, support, resources, training

{location}{conversation}
Current Farmer Question: "{query}"

Instructions:
- If the message is just a greeting or casual conversation, classify as "greeting"
- If the question is a follow-up to previous conversation, use context to understand intent
- If the question is vague, infer the most likely intent from keywords and context

Respond with ONLY the category name (greeting, crop, livestock, pest, weather, market, or extension). Do not include any other text."""

CLASSIFIER_HISTORY_TURNS = 4

_TOKEN = re.compile(r"[a-z]+")


def parse_category(raw: str) -> Optional[Intent]:
    """Premier mot de la sortie IA appartenant aux catégories ; None sinon."""
    valid = {c.value: c for c in AI_CATEGORIES}
    for token in _TOKEN.findall((raw or "").lower()):
        if token in valid:
            return valid[token]
    return None


# ======================================================================
# 3. CLASSIFIEUR
# ======================================================================


class IntentClassifier:
    """
    Classification IA avec repli déterministe par mots-clés.

    `classify` renvoie un tuple ordonné : l'intention principale puis les
    thèmes secondaires dont le vocabulaire apparaît aussi dans le texte,
    limité à `max_topics`.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        temperature: float = 0.2,
        max_topics: int = 3,
    ):
        self.generator = generator
        self.temperature = temperature
        self.max_topics = max_topics

    def _build_prompt(
        self,
        query: str,
        context: Optional[UserContext],
        history: Optional[Sequence[ConversationTurn]],
    ) -> str:
        location = ""
        if context is not None and context.user.county:
            location = f"User is located in {context.user.county}, Kenya. "
        elif context is not None and context.coordinates:
            lat, lon = context.coordinates
            location = f"User coordinates: {lat}, {lon}. "

        conversation = ""
        if history:
            lines = [
                f"{'Farmer' if turn['role'] == 'user' else 'Assistant'}: {turn['content']}"
                for turn in list(history)[-CLASSIFIER_HISTORY_TURNS:]
            ]
            conversation = ("\n\nRecent conversation context:\n" + "\n".join(lines)
                            + "\n\nConsider this context when classifying the current question.\n")
        return CLASSIFIER_PROMPT.format(location=location, conversation=conversation, query=query)

    def classify_ai(
        self,
        query: str,
        context: Optional[UserContext] = None,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> Optional[Intent]:
        if self.generator is None:
            return None
        try:
            raw = self.generator.generate(
                self._build_prompt(query, context, history),
                temperature=self.temperature,
            )
        except Exception as e:
            logger.warning("⚠️ AI intent classification failed, using keywords: %s", e)
            return None
        category = parse_category(raw)
        if category is None:
            logger.info("Unrecognised classifier output %r, using keywords", raw[:50])
        return category

    @staticmethod
    def classify_keywords(query: str) -> Intent:
        if is_greeting(query):
            return Intent.GREETING
        matches = keyword_intents(query)
        return matches[0] if matches else Intent.GENERAL

    def classify(
        self,
        query: str,
        context: Optional[UserContext] = None,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> Tuple[Intent, ...]:
        primary = self.classify_ai(query, context, history) or self.classify_keywords(query)
        if primary in (Intent.GREETING, Intent.GENERAL):
            logger.info("🎯 Intent: %s", primary.value)
            return (primary,)

        topics = [primary]
        for intent in keyword_intents(query):
            if intent not in topics:
                topics.append(intent)
        topics = topics[: max(1, self.max_topics)]
        logger.info("🎯 Intent: %s", ", ".join(t.value for t in topics))
        return tuple(topics)


__all__ = [
    "Intent",
    "IntentClassifier",
    "INTENT_RULES",
    "is_greeting",
    "greeting_reply",
    "keyword_intents",
    "parse_category",
]
