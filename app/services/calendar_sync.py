import logging
from dataclasses import dataclass, field
from datetime import timedelta
from sqlalchemy.orm import Session

from app.core.clock import to_utc_naive
from app.db.models.event import Event
from app.services.provider import ProviderClient

logger = logging.getLogger(__name__)

# Si el proveedor no da fin de carrera, asumimos 3 horas
ASSUMED_RACE_DURATION = timedelta(hours=3)


@dataclass
class SyncReport:
    season_year: int
    synced: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def derive_weekend(schedule):
    """
    Devuelve (weekend_start, weekend_end, sprint_flag) o None si el evento
    todavía no se puede programar (falta FP1 o carrera principal con fecha).
    """
    fp1 = next((s for s in schedule if "FirstPractice" in (s.get("type") or "")), None)
    main = next((s for s in schedule if s.get("type") == "MainRace"), None)

    if not fp1 or not fp1.get("startDate") or not main or not main.get("startDate"):
        return None

    start = to_utc_naive(fp1["startDate"])
    if main.get("endDate"):
        end = to_utc_naive(main["endDate"])
    else:
        end = to_utc_naive(main["startDate"]) + ASSUMED_RACE_DURATION

    sprint_flag = any(s.get("type") == "SprintRace" for s in schedule)
    return start, end, sprint_flag


def _normalize_sessions(schedule):
    sessions = []
    for s in schedule:
        start = to_utc_naive(s.get("startDate"))
        end = to_utc_naive(s.get("endDate"))
        sessions.append({
            "type": s.get("type"),
            "start_date": start.isoformat() if start else None,
            "end_date": end.isoformat() if end else None,
        })
    return sessions


def sync_calendar(db: Session, provider: ProviderClient, season_year: int) -> SyncReport:
    """
    Trae el calendario de la temporada y hace upsert de cada evento.
    Los errores del proveedor se propagan al que llama.
    """
    report = SyncReport(season_year=season_year)
    items = provider.list_events(season_year)

    for item in items:
        event_id = str(item.get("id"))
        schedule = item.get("schedule") or []

        try:
            derived = derive_weekend(schedule)
            sessions = _normalize_sessions(schedule)
        except ValueError as e:
            logger.warning("Evento %s con fechas ilegibles, se omite: %s", event_id, e)
            report.skipped.append(event_id)
            continue

        if derived is None:
            logger.info("Evento %s sin FP1/carrera con fecha, se omite", event_id)
            report.skipped.append(event_id)
            continue
        weekend_start, weekend_end, sprint_flag = derived

        event = (
            db.query(Event)
            .filter(Event.event_id == event_id, Event.season_year == season_year)
            .first()
        )
        if not event:
            event = Event(event_id=event_id, season_year=season_year)
            db.add(event)

        # Se sobrescribe todo, no se mezcla
        event.name = item.get("name") or event_id
        event.status = item.get("status")
        event.sprint_flag = sprint_flag
        event.weekend_start = weekend_start
        event.weekend_end = weekend_end
        event.sessions = sessions
        db.flush()

        report.synced.append(event_id)

    db.commit()
    logger.info(
        "Calendario %s sincronizado: %s eventos, %s omitidos",
        season_year, len(report.synced), len(report.skipped),
    )
    return report
