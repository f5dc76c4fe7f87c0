"""Web — chat, historique et mise à jour de la localisation."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from shambasmart.channels.base import ConversationService
from shambasmart.orchestrator.state import CanonicalMessage
from shambasmart.services.history_store import HistoryStore
from shambasmart.services.location import LocationService

logger = logging.getLogger("ShambaSmart.Channels.Web")

HISTORY_LIMIT = 50


class UserNotFound(LookupError):
    pass


class WebChannel:
    name = "web"

    def __init__(self, conversation: ConversationService, store: HistoryStore, location: LocationService):
        self.conversation = conversation
        self.store = store
        self.location = location

    def chat(self, identity: str, message: str, language: str = "") -> str:
        return self.conversation.process_inbound_message(CanonicalMessage(
            channel=self.name,
            from_identity=identity,
            content=message,
            metadata={"language": language} if language else {},
        ))

    def history(self, identity: str, limit: int = HISTORY_LIMIT) -> List[Dict[str, Any]]:
        """Messages du plus ancien au plus récent ; liste vide si l'identité est inconnue."""
        user = self.store.get_user(identity)
        if user is None:
            return []
        messages = self.store.get_messages(user.id, limit=limit)
        return [m.to_dict() for m in sorted(messages, key=lambda m: m.timestamp)]

    def update_location(self, identity: str, latitude: float, longitude: float) -> Dict[str, Any]:
        user = self.store.get_user(identity)
        if user is None:
            raise UserNotFound(identity)

        county = self.location.county_from_coordinates(latitude, longitude)
        self.store.update_user(
            user.id,
            latitude=latitude,
            longitude=longitude,
            county=county or user.county,
            location_updated_at=datetime.now(timezone.utc),
        )
        logger.info("📍 Location updated for %s: %s", user.id, county)
        return {
            "success": True,
            "county": county or "Unknown",
            "message": "Location updated successfully",
        }
