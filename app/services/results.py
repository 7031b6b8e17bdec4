import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field

from app.core.errors import ResultsUnavailable
from app.services.provider import ProviderClient

logger = logging.getLogger(__name__)

RACES = "races"
QUALIFYING = "qualifying"


@dataclass(frozen=True)
class SessionSource:
    listing: str                 # de qué listado sale la sesión
    types: tuple[str, ...]       # tipos de sesión aceptados, por orden de preferencia
    rank_field: str              # campo por el que se ordena


# Categoría -> de dónde sale y cómo se ordena. Se recorre igual para todas.
CATEGORIES: dict[str, SessionSource] = {
    "qualifying": SessionSource(QUALIFYING, ("Qualifying", "Standard"), "position"),
    "sprint_qualifying": SessionSource(QUALIFYING, ("SprintQualifying", "SprintShootOut", "Sprint"), "position"),
    "sprint_race": SessionSource(RACES, ("SprintRace",), "finishedPosition"),
    "race": SessionSource(RACES, ("MainRace",), "finishedPosition"),
}


@dataclass
class ActualResults:
    qualifying: list[str] = field(default_factory=list)
    sprint_qualifying: list[str] = field(default_factory=list)
    sprint_race: list[str] = field(default_factory=list)
    race: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, list[str]]:
        return {name: list(getattr(self, name)) for name in CATEGORIES}


def competitor_slug(last_name: str | None) -> str:
    """'Pérez' -> 'perez', 'Hülkenberg' -> 'hulkenberg'."""
    decomposed = unicodedata.normalize("NFKD", last_name or "")
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^\w]", "", stripped.lower(), flags=re.ASCII)


def _rank(entry: dict, rank_field: str) -> float:
    # Las carreras anidan la posición dentro de "result"
    value = entry.get(rank_field)
    if value is None:
        value = (entry.get("result") or {}).get(rank_field)
    if isinstance(value, bool):
        return math.inf
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.inf


def top3(entries: list[dict], rank_field: str) -> list[dict]:
    # sorted es estable: los empates conservan el orden del proveedor
    return sorted(entries, key=lambda e: _rank(e, rank_field))[:3]


def _find_session(items: list[dict], types: tuple[str, ...]) -> dict | None:
    for session_type in types:
        for item in items:
            if item.get("type") == session_type:
                return item
    return None


def _slug_for(provider: ProviderClient, entry: dict) -> str:
    driver = entry.get("driver") or {}
    last_name = driver.get("lastName")
    if not last_name and entry.get("driverId"):
        last_name = provider.driver(str(entry["driverId"])).get("lastName")
    return competitor_slug(last_name)


def normalize(provider: ProviderClient, event_id: str) -> ActualResults:
    """
    Top-3 real de cada categoría puntuable del evento.
    Las sesiones que no existan quedan como lista vacía.
    """
    listings = {
        RACES: provider.list_race_sessions(event_id),
        QUALIFYING: provider.list_qualifying_sessions(event_id),
    }
    if not listings[RACES] and not listings[QUALIFYING]:
        raise ResultsUnavailable(f"El proveedor aún no tiene sesiones para el evento {event_id}")

    fetchers = {
        RACES: provider.race_results,
        QUALIFYING: provider.qualifying_results,
    }

    actual = ActualResults()
    for category, source in CATEGORIES.items():
        session = _find_session(listings[source.listing], source.types)
        if not session:
            continue

        entries = fetchers[source.listing](event_id, str(session.get("id")))
        podium = [_slug_for(provider, e) for e in top3(entries, source.rank_field)]
        setattr(actual, category, podium)
        logger.debug("Evento %s, %s: %s", event_id, category, podium)

    return actual
