"""
Entités métier — objets simples échangés entre le store et le cœur.

Le cœur ne manipule jamais de lignes ORM : le store convertit à la frontière.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

LANGUAGES = ("en", "sw")
CHANNELS = ("whatsapp", "sms", "ussd", "voice", "web")
DIRECTIONS = ("inbound", "outbound")


@dataclass
class UserProfile:
    id: str
    phone_number: str
    name: Optional[str] = None
    county: Optional[str] = None
    region: Optional[str] = None
    preferred_language: str = "en"
    crops: List[str] = field(default_factory=list)
    livestock: List[str] = field(default_factory=list)
    soil_type: Optional[str] = None
    soil_ph: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    anonymous: bool = False

    @classmethod
    def anonymous_for(cls, identity: str) -> "UserProfile":
        """Profil éphémère quand le store est indisponible."""
        return cls(id=f"anonymous:{identity}", phone_number=identity, anonymous=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "phoneNumber": self.phone_number,
            "name": self.name,
            "county": self.county,
            "region": self.region,
            "preferredLanguage": self.preferred_language,
            "crops": list(self.crops),
            "livestock": list(self.livestock),
            "soilType": self.soil_type,
            "soilPH": self.soil_ph,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass
class StoredMessage:
    id: str
    user_id: str
    channel: str
    direction: str
    content: str
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "channel": self.channel,
            "direction": self.direction,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class Alert:
    type: str              # weather | pest | market | disease
    severity: str          # low | medium | high
    title: str
    message: str
    region: Optional[str] = None
    crop: Optional[str] = None
    user_id: Optional[str] = None
