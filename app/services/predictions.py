import logging
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.sql import func
from sqlalchemy.dialects import postgresql, sqlite

from app.core.errors import Locked, ValidationFailed
from app.db.models.prediction import Prediction, PICK_FIELDS
from app.services.lock_gate import ensure_open

logger = logging.getLogger(__name__)

MAX_PICKS = 3

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def clean_picks(raw) -> dict[str, list[str]]:
    """
    Valida un objeto de picks parcial.
    Cada categoría: strings sin espacios, sin vacíos, sin repetidos y como mucho 3.
    """
    if not isinstance(raw, dict):
        raise ValidationFailed("picks debe ser un objeto")

    unknown = set(raw) - set(PICK_FIELDS)
    if unknown:
        raise ValidationFailed(f"Categorías desconocidas: {', '.join(sorted(unknown))}")

    cleaned = {}
    for key in PICK_FIELDS:
        if key not in raw or raw[key] is None:
            continue
        values = raw[key]
        if not isinstance(values, (list, tuple)):
            raise ValidationFailed(f"{key} debe ser una lista")

        seen = []
        for value in values:
            if value is None:
                continue
            value = str(value).strip()
            if value and value not in seen:
                seen.append(value)
        cleaned[key] = seen[:MAX_PICKS]

    if not cleaned:
        raise ValidationFailed("No se ha enviado ninguna categoría")
    return cleaned


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Upsert atómico no soportado para {dialect}") from None


def upsert_prediction(
    db: Session,
    user_id: int,
    event_id: str,
    season_year: int,
    picks: dict,
    now: datetime,
) -> Prediction:
    """
    Crea o mezcla la predicción en una única sentencia INSERT ... ON CONFLICT.
    locked_at solo se fija al insertar. La rama de UPDATE exige que el
    locked_at guardado siga en el futuro, así que una predicción ya bloqueada
    no se toca aunque el calendario haya movido el weekend_start.
    """
    cleaned = clean_picks(picks)
    event = ensure_open(db, event_id, season_year, now)

    insert = _insert_for(db)
    values = {field: cleaned.get(field, []) for field in PICK_FIELDS}
    stmt = insert(Prediction).values(
        user_id=user_id,
        event_id=event_id,
        season_year=season_year,
        locked_at=event.weekend_start,
        **values,
    )
    # Solo las categorías enviadas se sobrescriben
    updates = {field: stmt.excluded[field] for field in cleaned}
    updates["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "season_year", "event_id"],
        set_=updates,
        where=Prediction.locked_at > now,
    ).returning(Prediction.id)

    row = db.execute(stmt).first()
    if row is None:
        db.rollback()
        logger.warning("Escritura rechazada, predicción ya bloqueada (user=%s, event=%s)", user_id, event_id)
        raise Locked(f"Predicciones bloqueadas para {event.name}")

    db.commit()
    prediction = db.get(Prediction, row[0], populate_existing=True)
    logger.info("Predicción guardada (id=%s, user=%s, event=%s)", prediction.id, user_id, event_id)
    return prediction


def get_prediction(db: Session, user_id: int, event_id: str, season_year: int) -> Prediction | None:
    return (
        db.query(Prediction)
        .filter(
            Prediction.user_id == user_id,
            Prediction.event_id == event_id,
            Prediction.season_year == season_year,
        )
        .first()
    )
