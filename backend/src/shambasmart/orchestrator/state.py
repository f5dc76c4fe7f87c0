from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from shambasmart.services.entities import UserProfile


class AgentResponse(TypedDict):
    """Réponse individuelle d'un générateur (fan-out/fan-in)."""
    agent: str                    # Nom du générateur (crop, pest, ...)
    response: str                 # Texte produit
    confidence: float             # 0.0 à 1.0
    metadata: Dict[str, Any]


class ConversationTurn(TypedDict):
    role: str                     # "user" | "assistant"
    content: str


@dataclass
class UserContext:
    """Contexte agricole dérivé du message et du profil stocké."""
    user: UserProfile
    crop: Optional[str] = None
    region: Optional[str] = None
    soil_type: Optional[str] = None
    farm_stage: Optional[str] = None      # planning | planting | growing | harvesting | post-harvest
    coordinates: Optional[Tuple[float, float]] = None

    @property
    def language(self) -> str:
        return self.user.preferred_language or "en"

    def location_line(self) -> str:
        """Ligne de localisation pour les prompts (coordonnées > comté > région)."""
        if self.coordinates:
            lat, lon = self.coordinates
            return f"User's exact location: {lat}, {lon}"
        if self.user.county:
            return f"User's county: {self.user.county}, Kenya"
        return f"Region: {self.region or 'Kenya'}, Kenya"


@dataclass
class CanonicalMessage:
    """Message entrant indépendant du transport."""
    channel: str
    from_identity: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


History = List[ConversationTurn]

__all__ = ["AgentResponse", "ConversationTurn", "UserContext", "CanonicalMessage", "History"]
