"""
Schémas Pydantic - Modèles Request/Response pour l'API ShambaSmart

Les champs obligatoires sont déclarés optionnels : leur absence est
vérifiée dans les routes pour répondre 400 (et non 422).
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================
# REQUEST MODELS
# ============================================

class ChatRequest(BaseModel):
    """Message du chat web. `phoneNumber` est accepté comme alias d'`identity`."""
    model_config = ConfigDict(populate_by_name=True)

    identity: Optional[str] = Field(default=None, validation_alias=AliasChoices("identity", "phoneNumber"))
    message: Optional[str] = None
    language: Optional[str] = None


class LocationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: Optional[str] = Field(default=None, validation_alias=AliasChoices("identity", "phoneNumber"))
    latitude: Optional[float] = None
    longitude: Optional[float] = None


# ============================================
# RESPONSE MODELS
# ============================================

class ChatResponse(BaseModel):
    response: str


class HistoryResponse(BaseModel):
    messages: List[Dict[str, Any]] = []


class LocationResponse(BaseModel):
    success: bool = True
    county: str
    message: str


class HealthResponse(BaseModel):
    """Réponse du health check."""
    status: str = "ok"
    service: str
    version: str
    database: str
    cache: str


class ErrorResponse(BaseModel):
    error: str
