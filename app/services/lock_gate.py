from datetime import datetime
from sqlalchemy.orm import Session

from app.core.errors import Locked, NotFound
from app.db.models.event import Event


def can_accept(event: Event, now: datetime) -> bool:
    return now < event.weekend_start


def ensure_open(db: Session, event_id: str, season_year: int, now: datetime) -> Event:
    """Única validación del bloqueo en la ruta de escritura."""
    event = (
        db.query(Event)
        .filter(Event.event_id == event_id, Event.season_year == season_year)
        .first()
    )
    if not event:
        raise NotFound(f"Evento {event_id} ({season_year}) no encontrado")

    if not can_accept(event, now):
        raise Locked(f"Predicciones bloqueadas para {event.name}")

    return event
