"""
Settings — Configuration centralisée ShambaSmart (Pydantic Settings).

Toute la configuration passe par ici. Pas de os.getenv() éparpillé.
Usage:
    from shambasmart.core.settings import settings
    print(settings.DATABASE_URL)
"""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration centralisée, lue depuis les variables d'env / .env."""

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent

    # --- API ---
    APP_NAME: str = "ShambaSmart AI"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: list[str] = ["*"]

    # --- LLM (ordre de repli explicite) ---
    # Valeurs possibles : "azure", "groq". Le premier disponible répond.
    LLM_BACKENDS: list[str] = ["azure", "groq"]
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 2000
    CLASSIFIER_TEMPERATURE: float = 0.2
    TRANSLATION_TEMPERATURE: float = 0.1

    # --- Groq ---
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.1-8b-instant"

    # --- Azure OpenAI ---
    AZURE_OPENAI_API_KEY: str = ""
    AZURE_OPENAI_ENDPOINT: str = ""
    AZURE_OPENAI_DEPLOYMENT_NAME: str = "gpt-4o"
    AZURE_OPENAI_API_VERSION: str = "2024-05-01-preview"

    # --- Database (PostgreSQL / SQLite) ---
    # Vide → historique en mémoire (dev / tests)
    DATABASE_URL: str = ""

    # --- Cache de réponses ---
    # Vide → cache local uniquement
    REDIS_URL: str = ""
    CACHE_MAX_SIZE: int = 100
    CACHE_FALLBACK_MAX_SIZE: int = 1000
    CACHE_TTL_SECONDS: int = 3600
    CACHE_SWEEP_MINUTES: int = 30

    # --- Recherche vectorielle externe (optionnelle) ---
    USE_VECTOR_SEARCH: bool = False
    VECTOR_SEARCH_URL: str = ""
    VECTOR_SEARCH_TIMEOUT: float = 5.0
    VECTOR_SEARCH_TOP_K: int = 5

    # --- Orchestration ---
    HISTORY_WINDOW: int = 6
    MAX_TOPICS: int = 3
    ENRICHMENT_TIMEOUT: float = 5.0
    GENERATOR_TIMEOUT: float = 60.0

    # --- APIs externes (enrichissement) ---
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/reverse"
    OPEN_METEO_URL: str = "https://api.open-meteo.com/v1/forecast"
    SOILGRIDS_URL: str = "https://rest.isric.org/soilgrids/v2.0/properties/query"
    MARKET_API_URL: str = ""
    HTTP_USER_AGENT: str = "ShambaSmartAI/1.0"

    # --- Twilio (SMS / WhatsApp / Voice) ---
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_SMS_NUMBER: str = ""
    TWILIO_WHATSAPP_NUMBER: str = ""
    WHATSAPP_VERIFY_TOKEN: str = "shambasmart-verify"

    # --- Rate limiting (requêtes / fenêtre en secondes) ---
    RATE_LIMIT_GENERAL: int = 100
    RATE_LIMIT_GENERAL_WINDOW: int = 900
    RATE_LIMIT_CHAT: int = 20
    RATE_LIMIT_CHAT_WINDOW: int = 60
    RATE_LIMIT_WEBHOOK: int = 200
    RATE_LIMIT_WEBHOOK_WINDOW: int = 300
    RATE_LIMIT_LOCATION: int = 10
    RATE_LIMIT_LOCATION_WINDOW: int = 600

    # --- Alertes proactives ---
    ALERTS_ENABLED: bool = False
    ALERT_INTERVAL_MINUTES: int = 60

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # --- Sentry (observabilité erreurs) ---
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"


# Singleton, importable partout
settings = Settings()
