import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from sqlalchemy.orm import Session

from app.db.models.prediction import Prediction
from app.services.provider import ProviderClient
from app.services.results import ActualResults, normalize

logger = logging.getLogger(__name__)

# Tabla de puntos: (exacto, en el top-3)
QUALIFYING_POINTS = (5, 2)
RACE_POINTS = (8, 3)

# categoría -> (campo de picks, puntos, es sprint)
CATEGORY_RULES = {
    "qualifying": ("qualifying_top3", QUALIFYING_POINTS, False),
    "sprint_qualifying": ("sprint_qualifying_top3", QUALIFYING_POINTS, True),
    "sprint_race": ("sprint_race_top3", RACE_POINTS, True),
    "race": ("race_top3", RACE_POINTS, False),
}


@dataclass(frozen=True)
class ScoreCard:
    qualifying: int = 0
    sprint_qualifying: int = 0
    sprint_race: int = 0
    race: int = 0

    @property
    def total(self) -> int:
        return self.qualifying + self.sprint_qualifying + self.sprint_race + self.race

    def as_dict(self) -> dict[str, int]:
        return {**asdict(self), "total": self.total}


@dataclass
class ScoreOutcome:
    actual: ActualResults
    predictions_scored: int


def score_top3(predicted, actual, exact_points, partial_points):
    """
    Compara hueco a hueco. Acierto exacto en el hueco i -> exact_points;
    piloto en el podio real pero en otro hueco -> partial_points.
    Los huecos vacíos no suman ni restan.
    """
    predicted = list(predicted or [])
    actual = list(actual or [])
    total = 0

    for i in range(3):
        pick = predicted[i] if i < len(predicted) else None
        if not pick:
            continue

        if i < len(actual) and pick == actual[i]:
            total += exact_points
        elif pick in actual:
            total += partial_points

    return total


def score_prediction(picks: dict, actual: ActualResults, sprint_flag: bool) -> ScoreCard:
    scores = {}
    for category, (pick_field, (exact, partial), is_sprint) in CATEGORY_RULES.items():
        # Sin sprint el fin de semana, los picks de sprint que queden no cuentan
        if is_sprint and not sprint_flag:
            scores[category] = 0
            continue
        scores[category] = score_top3(picks.get(pick_field), getattr(actual, category), exact, partial)
    return ScoreCard(**scores)


def score_event(
    db: Session,
    provider: ProviderClient,
    event_id: str,
    season_year: int,
    sprint_flag: bool,
    now: datetime,
) -> ScoreOutcome:
    """
    Puntúa todas las predicciones de un evento.
    Cada fila se sobrescribe entera, así que repetirlo da el mismo resultado.
    """
    actual = normalize(provider, event_id)

    predictions = (
        db.query(Prediction)
        .filter(Prediction.event_id == event_id, Prediction.season_year == season_year)
        .all()
    )

    for prediction in predictions:
        card = score_prediction(prediction.picks, actual, sprint_flag)
        # Se sobrescriben las cinco columnas, nunca se acumula
        prediction.score_qualifying = card.qualifying
        prediction.score_sprint_qualifying = card.sprint_qualifying
        prediction.score_sprint_race = card.sprint_race
        prediction.score_race = card.race
        prediction.score_total = card.total
        prediction.scored_at = now

    db.commit()
    logger.info("Evento %s (%s): %s predicciones puntuadas", event_id, season_year, len(predictions))
    return ScoreOutcome(actual=actual, predictions_scored=len(predictions))
