import os
from datetime import datetime, timezone

# Todo se lee del entorno una sola vez al importar


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./podium.db")

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# Proveedor de resultados (Hyprace vía RapidAPI)
PROVIDER_BASE_URL = os.getenv("PROVIDER_BASE_URL", "https://hyprace-api.p.rapidapi.com")
PROVIDER_HOST = os.getenv("PROVIDER_HOST", "hyprace-api.p.rapidapi.com")
RAPIDAPI_KEY = os.getenv("RAPIDAPI_KEY", "")
PROVIDER_TIMEOUT = _float("PROVIDER_TIMEOUT", 15.0)
PROVIDER_MAX_RETRIES = _int("PROVIDER_MAX_RETRIES", 5)
PROVIDER_BACKOFF = _float("PROVIDER_BACKOFF", 2.0)

# Scheduler de puntuación
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"
SCORING_INTERVAL_SECONDS = _int("SCORING_INTERVAL_SECONDS", 3600)
SCORING_STARTUP_DELAY_SECONDS = _int("SCORING_STARTUP_DELAY_SECONDS", 10)
SCORING_BUFFER_HOURS = _float("SCORING_BUFFER_HOURS", 4)
SCORED_MARKER_TTL_SECONDS = _int("SCORED_MARKER_TTL_SECONDS", 7 * 24 * 3600)
SCORED_MARKER_MAX_ENTRIES = _int("SCORED_MARKER_MAX_ENTRIES", 256)

CALENDAR_SEASON = _int("CALENDAR_SEASON", datetime.now(timezone.utc).year)
# Sincronizar el calendario al arrancar, con o sin scheduler
CALENDAR_SYNC_ON_STARTUP = os.getenv("CALENDAR_SYNC_ON_STARTUP", "1") == "1"

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
