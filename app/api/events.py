from fastapi import APIRouter
from app.db.session import SessionLocal
from app.db.models.event import Event
from app.core.clock import utcnow
from app.core.errors import NotFound
from app.schemas.event import EventOut, EventDetailOut
from app.services.lock_gate import can_accept

router = APIRouter(prefix="/events", tags=["Events"])

@router.get("/{season_year}", response_model=list[EventOut])
def list_events(season_year: int):
    db = SessionLocal()
    events = (
        db.query(Event)
        .filter(Event.season_year == season_year)
        .order_by(Event.weekend_start)
        .all()
    )
    db.close()
    return events

@router.get("/{season_year}/{event_id}", response_model=EventDetailOut)
def get_event(season_year: int, event_id: str):
    db = SessionLocal()
    event = (
        db.query(Event)
        .filter(Event.season_year == season_year, Event.event_id == event_id)
        .first()
    )
    db.close()

    if not event:
        raise NotFound("Evento no encontrado")

    data = EventOut.model_validate(event).model_dump()
    return EventDetailOut(**data, locked=not can_accept(event, utcnow()))
