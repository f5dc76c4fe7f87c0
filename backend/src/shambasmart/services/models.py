"""
SQLAlchemy Models — Schéma de persistance ShambaSmart.

SOURCE UNIQUE DE VÉRITÉ pour le schéma ORM.
Utilisé par services/history_store.py (SqlHistoryStore)
et core/database.py (create_all au startup).
"""

import uuid

from sqlalchemy import (
    Column, String, DateTime, Integer, Float,
    JSON, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Agriculteur — identifié par son numéro (ou identité de canal)."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    phone_number = Column("phoneNumber", String, unique=True, nullable=False, index=True)
    name = Column(String)
    county = Column(String)
    region = Column(String)
    preferred_language = Column("preferredLanguage", String(2), nullable=False, default="en")
    crops = Column(JSON, nullable=False, default=list)
    livestock = Column(JSON, nullable=False, default=list)
    soil_type = Column("soilType", String)
    soil_ph = Column("soilPH", Float)
    latitude = Column(Float)
    longitude = Column(Float)
    location_updated_at = Column("locationUpdatedAt", DateTime(timezone=True))
    meta = Column("metadata", JSON)
    created_at = Column("createdAt", DateTime(timezone=True), server_default=func.now())
    updated_at = Column("updatedAt", DateTime(timezone=True), default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "phoneNumber": self.phone_number,
            "name": self.name,
            "county": self.county,
            "region": self.region,
            "preferredLanguage": self.preferred_language,
            "crops": list(self.crops or []),
            "livestock": list(self.livestock or []),
            "soilType": self.soil_type,
            "soilPH": self.soil_ph,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "locationUpdatedAt": self.location_updated_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "metadata": self.meta,
        }


class Message(Base):
    """Message — journal append-only par utilisateur."""
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column("userId", String, ForeignKey("users.id"), nullable=False)
    channel = Column(String(16), nullable=False)       # whatsapp | sms | ussd | voice | web
    direction = Column(String(8), nullable=False)      # inbound | outbound
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    meta = Column("metadata", JSON)

    __table_args__ = (
        Index("ix_messages_user_ts", "userId", "timestamp"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "channel": self.channel,
            "direction": self.direction,
            "content": self.content,
            "timestamp": self.timestamp,
            "metadata": self.meta,
        }


class AlertRecord(Base):
    """Alerte proactive envoyée (ou tentée) à un utilisateur."""
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column("userId", String, ForeignKey("users.id"), nullable=False)
    type = Column(String(16), nullable=False)          # weather | pest | market | disease
    severity = Column(String(8), nullable=False)       # low | medium | high
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    region = Column(String)
    crop = Column(String)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
