"""
ConversationService — routine commune à tous les canaux.

    utilisateur (get-or-create) → message entrant → contexte →
    historique (hors message courant) → orchestrateur → message sortant

La persistance est « best effort » : un échec d'écriture est journalisé
sans bloquer la réponse, un échec de lecture du profil bascule sur un
profil anonyme éphémère.
"""

import logging
import re
from typing import List, Optional, Sequence

from shambasmart.orchestrator.orchestrator import AgentOrchestrator
from shambasmart.orchestrator.state import CanonicalMessage, ConversationTurn, UserContext
from shambasmart.services.entities import UserProfile
from shambasmart.services.history_store import HistoryStore
from shambasmart.services.location import TOWN_ALIASES

logger = logging.getLogger("ShambaSmart.Channels")

CROP_VOCABULARY = (
    "maize", "wheat", "rice", "beans", "potatoes", "tomatoes", "coffee", "tea",
    "sorghum", "millet", "cassava", "sweet potato",
)
COUNTY_VOCABULARY = (
    "nairobi", "mombasa", "kisumu", "nakuru", "eldoret", "thika", "nyeri", "meru",
    "embu", "machakos", "kakamega", "bungoma",
)
# Ordre significatif : « post-harvest » avant « harvest », « planning » avant « plant »
FARM_STAGE_RULES = (
    (("post-harvest", "storage"), "post-harvest"),
    (("harvest",), "harvesting"),
    (("planning", "prepar"), "planning"),
    (("plant",), "planting"),
    (("grow",), "growing"),
)

PROCESSING_APOLOGY = "Sorry, I encountered an error. Please try again."


def _mentioned(content: str, vocabulary: Sequence[str]) -> Optional[str]:
    """Premier terme cité en mot entier : « tea » n'est pas dans « teacher »."""
    return next((term for term in vocabulary if re.search(r"\b" + re.escape(term) + r"\b", content)), None)


def mentioned_county(text: str) -> Optional[str]:
    """Nom de comté canonique cité dans le message (« eldoret » → « Uasin Gishu »)."""
    place = _mentioned((text or "").lower(), COUNTY_VOCABULARY)
    if place is None:
        return None
    return TOWN_ALIASES.get(place, place.title())


def extract_context(text: str, user: UserProfile) -> UserContext:
    """Culture, région et stade mentionnés dans le message, complétés par le profil."""
    content = (text or "").lower()
    crop = _mentioned(content, CROP_VOCABULARY)
    region = _mentioned(content, COUNTY_VOCABULARY)
    farm_stage = next(
        (stage for keywords, stage in FARM_STAGE_RULES if any(k in content for k in keywords)),
        None,
    )
    coordinates = None
    if user.latitude is not None and user.longitude is not None:
        coordinates = (user.latitude, user.longitude)

    return UserContext(
        user=user,
        crop=crop,
        region=region or (user.county.lower() if user.county else None),
        soil_type=user.soil_type,
        farm_stage=farm_stage,
        coordinates=coordinates,
    )


class ConversationService:
    def __init__(self, store: HistoryStore, orchestrator: AgentOrchestrator, history_window: int = 6):
        self.store = store
        self.orchestrator = orchestrator
        self.history_window = history_window

    # ── Étapes ──────────────────────────────────────────────

    def _resolve_user(self, identity: str) -> UserProfile:
        try:
            return self.store.get_or_create_user(identity)
        except Exception as e:
            logger.error("User lookup failed for %s, using anonymous context: %s", identity, e, exc_info=True)
            return UserProfile.anonymous_for(identity)

    def _append(self, user: UserProfile, message: CanonicalMessage, direction: str, content: str,
                metadata=None) -> Optional[str]:
        if user.anonymous:
            return None
        try:
            stored = self.store.append_message(
                user.id, message.channel, direction, content,
                metadata=metadata,
                timestamp=message.timestamp if direction == "inbound" else None,
            )
            return stored.id
        except Exception as e:
            logger.error("Failed to save %s %s message: %s", message.channel, direction, e, exc_info=True)
            return None

    def _remember(self, user: UserProfile, context: UserContext, text: str) -> UserProfile:
        """Culture et comté cités rejoignent le profil ; le dernier comté cité l'emporte."""
        if user.anonymous:
            return user
        if context.crop:
            try:
                user = self.store.add_interests(user, [context.crop])
            except Exception as e:
                logger.warning("Could not update interests for %s: %s", user.id, e)

        county = mentioned_county(text)
        if county and county.lower() != (user.county or "").lower():
            try:
                user = self.store.update_user(user.id, county=county) or user
                logger.info("📍 County of %s set to %s from message", user.id, county)
            except Exception as e:
                logger.warning("Could not update county for %s: %s", user.id, e)
        return user

    def build_history(self, user: UserProfile, exclude_id: Optional[str] = None) -> List[ConversationTurn]:
        """N derniers tours, du plus ancien au plus récent, sans le message courant."""
        if user.anonymous:
            return []
        try:
            messages = self.store.get_messages(user.id, limit=self.history_window + 1)
        except Exception as e:
            logger.error("History fetch failed for %s: %s", user.id, e, exc_info=True)
            return []

        messages = [m for m in messages if m.id != exclude_id]
        messages.sort(key=lambda m: m.timestamp)
        return [
            ConversationTurn(
                role="user" if m.direction == "inbound" else "assistant",
                content=m.content,
            )
            for m in messages[-self.history_window:]
        ]

    # ── Point d'entrée ──────────────────────────────────────

    def process_inbound_message(self, message: CanonicalMessage) -> str:
        try:
            user = self._resolve_user(message.from_identity)
            inbound_id = self._append(user, message, "inbound", message.content, metadata=message.metadata)

            context = extract_context(message.content, user)
            context.user = self._remember(user, context, message.content)

            history = self.build_history(user, exclude_id=inbound_id)
            language = message.metadata.get("language") or user.preferred_language or "en"

            reply = self.orchestrator.process_query(message.content, context, history, language)

            self._append(user, message, "outbound", reply)
            return reply
        except Exception as e:
            logger.error("Error processing %s message: %s", message.channel, e, exc_info=True)
            return PROCESSING_APOLOGY


__all__ = ["ConversationService", "extract_context", "mentioned_county", "CROP_VOCABULARY", "COUNTY_VOCABULARY"]
