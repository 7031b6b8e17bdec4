from pydantic import BaseModel
from datetime import datetime
from typing import Any

class PredictionUpsert(BaseModel):
    event_id: str
    season_year: int
    # Se valida en el servicio para distinguir ValidationFailed de un 422 genérico
    picks: dict[str, Any] = {}

class PicksOut(BaseModel):
    qualifying_top3: list[str] = []
    sprint_qualifying_top3: list[str] = []
    sprint_race_top3: list[str] = []
    race_top3: list[str] = []

class ScoreOut(BaseModel):
    qualifying: int = 0
    sprint_qualifying: int = 0
    sprint_race: int = 0
    race: int = 0
    total: int = 0

class PredictionOut(BaseModel):
    id: int
    user_id: int
    event_id: str
    season_year: int
    picks: PicksOut
    locked_at: datetime
    score: ScoreOut
    scored_at: datetime | None = None

    @classmethod
    def from_model(cls, p):
        return cls(
            id=p.id,
            user_id=p.user_id,
            event_id=p.event_id,
            season_year=p.season_year,
            picks=PicksOut(**p.picks),
            locked_at=p.locked_at,
            score=ScoreOut(
                qualifying=p.score_qualifying or 0,
                sprint_qualifying=p.score_sprint_qualifying or 0,
                sprint_race=p.score_sprint_race or 0,
                race=p.score_race or 0,
                total=p.score_total or 0,
            ),
            scored_at=p.scored_at,
        )
