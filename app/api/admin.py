import logging
from fastapi import APIRouter, Depends
from app.db.session import SessionLocal
from app.db.models.event import Event
from app.core.deps import require_admin, get_provider, get_scheduler
from app.schemas.event import EventOut, ManualScoreIn, ManualScoreOut
from app.services.calendar_sync import sync_calendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# -----------------------
# Puntuación
# -----------------------
@router.post("/score", response_model=ManualScoreOut)
def score_event_manually(
    payload: ManualScoreIn,
    current_user = Depends(require_admin),
    scheduler = Depends(get_scheduler),
):
    """
    Fuerza la puntuación de un evento (p.ej. tras una corrección del proveedor).
    Los errores llegan tal cual: 404 si no existe, 503 si aún no hay resultados.
    """
    logger.info("Puntuación manual pedida por %s: %s (%s)", current_user.username, payload.event_id, payload.season_year)
    event_name, outcome = scheduler.manual_score(payload.event_id, payload.season_year)
    return ManualScoreOut(
        event_name=event_name,
        actual=outcome.actual.as_dict(),
        predictions_scored=outcome.predictions_scored,
    )

@router.get("/scheduler")
def scheduler_status(current_user = Depends(require_admin), scheduler = Depends(get_scheduler)):
    return {
        "buffer_hours": scheduler.buffer.total_seconds() / 3600,
        "scored": [
            {"event_id": event_id, "season_year": season_year}
            for event_id, season_year in scheduler.marker.keys()
        ],
    }


# -----------------------
# Calendario
# -----------------------
@router.post("/calendar/sync/{season_year}")
def sync_season_calendar(
    season_year: int,
    current_user = Depends(require_admin),
    provider = Depends(get_provider),
):
    db = SessionLocal()
    try:
        report = sync_calendar(db, provider, season_year)
    finally:
        db.close()
    return {"season_year": season_year, "synced": report.synced, "skipped": report.skipped}

@router.get("/events/{season_year}", response_model=list[EventOut])
def list_season_events(season_year: int, current_user = Depends(require_admin)):
    db = SessionLocal()
    events = (
        db.query(Event)
        .filter(Event.season_year == season_year)
        .order_by(Event.weekend_start.asc())
        .all()
    )
    db.close()
    return events
