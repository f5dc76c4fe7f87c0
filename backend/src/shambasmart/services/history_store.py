"""
History Store — utilisateurs et journal de messages.

Deux implémentations du même contrat :
  - SqlHistoryStore      : SQLAlchemy (PostgreSQL / SQLite), mode production
  - InMemoryHistoryStore : dictionnaires protégés par verrou, dev / tests

Les horodatages sont normalisés ICI, à la lecture, via normalize_timestamp :
le reste du cœur ne voit que des datetime UTC.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from shambasmart.services.entities import Alert, StoredMessage, UserProfile
from shambasmart.services.models import AlertRecord, Message, User

logger = logging.getLogger("ShambaSmart.HistoryStore")

# Au-delà de ce seuil, un epoch numérique est en millisecondes
_EPOCH_MILLIS_THRESHOLD = 1_000_000_000_000


def _from_epoch(value: float) -> datetime:
    seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def normalize_timestamp(value: Any) -> datetime:
    """
    Convertit toute représentation d'horodatage en datetime UTC.

    Acceptés : datetime (naïf = UTC), epoch secondes ou millisecondes,
    chaîne ISO-8601, structure {seconds|_seconds, nanos|_nanoseconds}
    (dict ou objet). Tout le reste → maintenant.
    """
    try:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, bool):
            raise TypeError("bool is not a timestamp")
        if isinstance(value, (int, float)):
            return _from_epoch(value)
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

        if isinstance(value, dict):
            seconds = value.get("seconds", value.get("_seconds"))
            nanos = value.get("nanos", value.get("_nanoseconds", 0))
        else:
            seconds = getattr(value, "seconds", getattr(value, "_seconds", None))
            nanos = getattr(value, "nanos", getattr(value, "_nanoseconds", 0))
        if seconds is not None:
            return datetime.fromtimestamp(float(seconds) + float(nanos or 0) / 1e9, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.debug("Unparseable timestamp %r: %s", value, e)

    return datetime.now(timezone.utc)


def _merge_unique(existing: Iterable[str], extra: Iterable[str]) -> List[str]:
    merged: List[str] = []
    for item in list(existing) + list(extra):
        if item and item not in merged:
            merged.append(item)
    return merged


class HistoryStore:
    """Contrat consommé par le cœur et les canaux."""

    def get_user(self, identity: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def create_user(self, identity: str, **fields) -> UserProfile:
        raise NotImplementedError

    def update_user(self, user_id: str, **updates) -> Optional[UserProfile]:
        raise NotImplementedError

    def append_message(
        self,
        user_id: str,
        channel: str,
        direction: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Any = None,
    ) -> StoredMessage:
        raise NotImplementedError

    def get_messages(self, user_id: str, limit: int = 50) -> List[StoredMessage]:
        """Derniers messages, du plus récent au plus ancien."""
        raise NotImplementedError

    def list_users(self) -> List[UserProfile]:
        raise NotImplementedError

    def save_alert(self, alert: Alert) -> None:
        raise NotImplementedError

    def is_healthy(self) -> bool:
        return True

    # ── Helpers communs ─────────────────────────────────────

    def get_or_create_user(self, identity: str) -> UserProfile:
        user = self.get_user(identity)
        if user is not None:
            return user
        return self.create_user(identity)

    def add_interests(self, user: UserProfile, crops: Iterable[str] = ()) -> UserProfile:
        crops = [c for c in crops if c and c not in user.crops]
        if not crops or user.anonymous:
            return user
        return self.update_user(user.id, crops=_merge_unique(user.crops, crops)) or user

    def get_users_with_crops(self) -> List[UserProfile]:
        return [u for u in self.list_users() if u.crops]

    def get_unique_regions(self) -> List[str]:
        regions: List[str] = []
        for user in self.list_users():
            for value in (user.county, user.region):
                if value and value not in regions:
                    regions.append(value)
        return regions

    def get_users_by_region(self, region: str) -> List[UserProfile]:
        region = region.lower()
        return [
            u for u in self.list_users()
            if (u.county or "").lower() == region or (u.region or "").lower() == region
        ]


# ══════════════════════════════════════════════════════════════
# SQLAlchemy
# ══════════════════════════════════════════════════════════════

class SqlHistoryStore(HistoryStore):
    """Store relationnel. Une session transactionnelle par opération."""

    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    @contextmanager
    def _get_session(self):
        """Fournit une session transactionnelle sécurisée."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _to_profile(row: User) -> UserProfile:
        return UserProfile(
            id=row.id,
            phone_number=row.phone_number,
            name=row.name,
            county=row.county,
            region=row.region,
            preferred_language=row.preferred_language or "en",
            crops=list(row.crops or []),
            livestock=list(row.livestock or []),
            soil_type=row.soil_type,
            soil_ph=row.soil_ph,
            latitude=row.latitude,
            longitude=row.longitude,
            location_updated_at=normalize_timestamp(row.location_updated_at) if row.location_updated_at else None,
            created_at=normalize_timestamp(row.created_at) if row.created_at else None,
            updated_at=normalize_timestamp(row.updated_at) if row.updated_at else None,
            metadata=dict(row.meta or {}),
        )

    @staticmethod
    def _to_message(row: Message) -> StoredMessage:
        return StoredMessage(
            id=row.id,
            user_id=row.user_id,
            channel=row.channel,
            direction=row.direction,
            content=row.content,
            timestamp=normalize_timestamp(row.timestamp),
            metadata=dict(row.meta or {}),
        )

    def get_user(self, identity: str) -> Optional[UserProfile]:
        with self._get_session() as session:
            row = session.query(User).filter(User.phone_number == identity).first()
            return self._to_profile(row) if row else None

    def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        with self._get_session() as session:
            row = session.get(User, user_id)
            return self._to_profile(row) if row else None

    def create_user(self, identity: str, **fields) -> UserProfile:
        with self._get_session() as session:
            now = datetime.now(timezone.utc)
            row = User(
                id=str(uuid.uuid4()),
                phone_number=identity,
                preferred_language=fields.pop("preferred_language", None) or "en",
                crops=list(fields.pop("crops", []) or []),
                livestock=list(fields.pop("livestock", []) or []),
                created_at=now,
                updated_at=now,
            )
            for name, value in fields.items():
                setattr(row, "meta" if name == "metadata" else name, value)
            session.add(row)
            session.flush()
            logger.info("👤 Nouvel utilisateur créé (%s)", row.id)
            return self._to_profile(row)

    def update_user(self, user_id: str, **updates) -> Optional[UserProfile]:
        with self._get_session() as session:
            row = session.get(User, user_id)
            if row is None:
                return None
            for name, value in updates.items():
                setattr(row, "meta" if name == "metadata" else name, value)
            row.updated_at = datetime.now(timezone.utc)
            session.flush()
            return self._to_profile(row)

    def append_message(self, user_id, channel, direction, content, metadata=None, timestamp=None):
        with self._get_session() as session:
            row = Message(
                id=str(uuid.uuid4()),
                user_id=user_id,
                channel=channel,
                direction=direction,
                content=content,
                timestamp=normalize_timestamp(timestamp) if timestamp is not None else datetime.now(timezone.utc),
                meta=metadata or None,
            )
            session.add(row)
            session.flush()
            return self._to_message(row)

    def get_messages(self, user_id: str, limit: int = 50) -> List[StoredMessage]:
        with self._get_session() as session:
            rows = (
                session.query(Message)
                .filter(Message.user_id == user_id)
                .order_by(Message.timestamp.desc())
                .limit(limit)
                .all()
            )
            return [self._to_message(r) for r in rows]

    def list_users(self) -> List[UserProfile]:
        with self._get_session() as session:
            return [self._to_profile(r) for r in session.query(User).all()]

    def save_alert(self, alert: Alert) -> None:
        with self._get_session() as session:
            session.add(AlertRecord(
                user_id=alert.user_id,
                type=alert.type,
                severity=alert.severity,
                title=alert.title,
                message=alert.message,
                region=alert.region,
                crop=alert.crop,
            ))

    def is_healthy(self) -> bool:
        from shambasmart.core.database import check_connection
        return check_connection()


# ══════════════════════════════════════════════════════════════
# En mémoire
# ══════════════════════════════════════════════════════════════

class InMemoryHistoryStore(HistoryStore):
    """
    Store volatile. Les messages gardent leur horodatage brut tel que reçu
    (datetime, epoch, dict…) et sont normalisés à la lecture.
    """

    def __init__(self):
        self._users: Dict[str, UserProfile] = {}
        self._by_identity: Dict[str, str] = {}
        self._messages: Dict[str, List[Dict[str, Any]]] = {}
        self.alerts: List[Alert] = []
        self._lock = threading.Lock()

    def get_user(self, identity: str) -> Optional[UserProfile]:
        with self._lock:
            user_id = self._by_identity.get(identity)
            return self._users.get(user_id) if user_id else None

    def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._users.get(user_id)

    def create_user(self, identity: str, **fields) -> UserProfile:
        with self._lock:
            existing = self._by_identity.get(identity)
            if existing:
                return self._users[existing]
            now = datetime.now(timezone.utc)
            user = UserProfile(
                id=str(uuid.uuid4()),
                phone_number=identity,
                created_at=now,
                updated_at=now,
                **fields,
            )
            self._users[user.id] = user
            self._by_identity[identity] = user.id
            return user

    def update_user(self, user_id: str, **updates) -> Optional[UserProfile]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            for name, value in updates.items():
                setattr(user, name, value)
            user.updated_at = datetime.now(timezone.utc)
            return user

    def append_message(self, user_id, channel, direction, content, metadata=None, timestamp=None):
        record = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "channel": channel,
            "direction": direction,
            "content": content,
            "timestamp": timestamp if timestamp is not None else datetime.now(timezone.utc),
            "metadata": dict(metadata or {}),
        }
        with self._lock:
            self._messages.setdefault(user_id, []).append(record)
        return self._to_message(record)

    @staticmethod
    def _to_message(record: Dict[str, Any]) -> StoredMessage:
        return StoredMessage(
            id=record["id"],
            user_id=record["user_id"],
            channel=record["channel"],
            direction=record["direction"],
            content=record["content"],
            timestamp=normalize_timestamp(record["timestamp"]),
            metadata=record["metadata"],
        )

    def get_messages(self, user_id: str, limit: int = 50) -> List[StoredMessage]:
        with self._lock:
            records = list(self._messages.get(user_id, []))
        messages = [self._to_message(r) for r in records]
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages[:limit]

    def list_users(self) -> List[UserProfile]:
        with self._lock:
            return list(self._users.values())

    def save_alert(self, alert: Alert) -> None:
        with self._lock:
            self.alerts.append(alert)


def build_history_store(session_factory=None) -> HistoryStore:
    """SQL si une session factory existe (DATABASE_URL configurée), sinon mémoire."""
    if session_factory is not None:
        return SqlHistoryStore(session_factory)
    logger.warning("⚠️ Historique en mémoire : les conversations ne survivront pas au redémarrage.")
    return InMemoryHistoryStore()


__all__ = [
    "normalize_timestamp",
    "HistoryStore",
    "SqlHistoryStore",
    "InMemoryHistoryStore",
    "build_history_store",
]
