from pydantic import BaseModel, ConfigDict
from datetime import datetime

class SessionOut(BaseModel):
    type: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    season_year: int
    name: str
    status: str | None = None
    sprint_flag: bool
    weekend_start: datetime
    weekend_end: datetime
    sessions: list[SessionOut] = []

class EventDetailOut(EventOut):
    locked: bool

class ManualScoreIn(BaseModel):
    event_id: str
    season_year: int

class ManualScoreOut(BaseModel):
    event_name: str
    actual: dict[str, list[str]]
    predictions_scored: int
